from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from storefront.domain.exceptions import InvalidStateError


COD_METHOD = "cod"
COD_FEE = Decimal("50")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Единственное место, где описаны допустимые переходы статусов
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Requester(BaseModel):
    """Пользователь, от имени которого выполняется запрос"""
    id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Product(BaseModel):
    """Domain Entity — товар каталога"""
    id: str
    name: str
    description: str = ""
    price: Decimal = Field(ge=0)
    stock: int = Field(ge=0)
    category: str
    image_url: str = ""
    sizes: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    featured: bool = False
    created_at: datetime
    updated_at: datetime


class OrderItem(BaseModel):
    """Value Object — позиция заказа с зафиксированной ценой"""
    product_id: str
    quantity: int = Field(gt=0)
    price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class PaymentInfo(BaseModel):
    method: str
    id: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING


class Order(BaseModel):
    """Domain Entity — заказ"""
    id: str
    user_id: str
    items: list[OrderItem]
    total_amount: Decimal
    shipping_address: dict = Field(default_factory=dict)
    payment_info: PaymentInfo
    status: OrderStatus = OrderStatus.PENDING
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def can_transition_to(self, status: OrderStatus) -> bool:
        """Бизнес-правило: переходы только вперёд, delivered и cancelled терминальные"""
        return status in ALLOWED_TRANSITIONS[self.status]

    def can_be_cancelled(self) -> bool:
        return self.can_transition_to(OrderStatus.CANCELLED)

    def transition_to(self, status: OrderStatus) -> None:
        if not self.can_transition_to(status):
            if self.status in TERMINAL_STATUSES:
                raise InvalidStateError(
                    f"Заказ {self.id} уже в статусе {self.status.value} и не может быть изменён"
                )
            raise InvalidStateError(
                f"Недопустимый переход статуса заказа {self.id}: {self.status.value} -> {status.value}"
            )
        self.status = status

    def cancel(self, reason: str) -> None:
        if not self.can_be_cancelled():
            raise InvalidStateError(
                f"Заказ не может быть отменён, так как он уже {self.status.value}"
            )
        self.transition_to(OrderStatus.CANCELLED)
        self.cancellation_reason = reason


def calculate_total(items: list[OrderItem], payment_method: str) -> Decimal:
    """Сумма позиций плюс фиксированный сбор за оплату при получении"""
    total = sum((item.subtotal for item in items), Decimal("0"))
    if payment_method.lower() == COD_METHOD:
        total += COD_FEE
    return total
