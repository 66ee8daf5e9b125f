from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from storefront.domain.models import OrderStatus, PaymentStatus


class OrderLineRequest(BaseModel):
    product: str
    quantity: int = Field(gt=0)
    size: Optional[str] = None
    color: Optional[str] = None


class CreateOrderRequest(BaseModel):
    items: list[OrderLineRequest] = []
    shipping_address: dict = Field(default_factory=dict, alias="shippingAddress")
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")

    model_config = {"populate_by_name": True}


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    reason: Optional[str] = None


class OrderItemResponse(BaseModel):
    product: str
    quantity: int
    price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None


class PaymentInfoResponse(BaseModel):
    method: str
    id: Optional[str] = None
    status: PaymentStatus


class OrderResponse(BaseModel):
    id: str
    user: str
    items: list[OrderItemResponse]
    total_amount: Decimal = Field(serialization_alias="totalAmount")
    shipping_address: dict = Field(serialization_alias="shippingAddress")
    payment_info: PaymentInfoResponse = Field(serialization_alias="paymentInfo")
    status: OrderStatus
    cancellation_reason: Optional[str] = Field(default=None, serialization_alias="cancellationReason")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            user=order.user_id,
            items=[
                OrderItemResponse(
                    product=item.product_id,
                    quantity=item.quantity,
                    price=item.price,
                    size=item.size,
                    color=item.color
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            shipping_address=order.shipping_address,
            payment_info=PaymentInfoResponse(**order.payment_info.model_dump()),
            status=order.status,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at
        )


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    category: str
    image_url: str = Field(serialization_alias="imageUrl")
    sizes: list[str]
    colors: list[str]
    featured: bool
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_domain(cls, product):
        return cls(**product.model_dump())


class CreatePaymentOrderRequest(BaseModel):
    amount: Optional[Decimal] = None
    currency: str = "INR"
    receipt: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    order_id: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    order_id: str = Field(serialization_alias="orderId")
    payment_id: str = Field(serialization_alias="paymentId")


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    detail: str
