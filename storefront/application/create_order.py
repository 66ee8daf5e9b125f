import logging
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional
import uuid

from storefront.domain.models import (
    Order, OrderItem, OrderStatus, PaymentInfo, Requester, calculate_total
)
from storefront.domain.exceptions import (
    ValidationError, ProductNotFoundError, InsufficientStockError
)


logger = logging.getLogger(__name__)


class OrderLineDTO(BaseModel):
    product_id: str
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None


class CreateOrderDTO(BaseModel):
    items: list[OrderLineDTO]
    shipping_address: dict = {}
    payment_method: Optional[str] = None


class CreateOrderUseCase:
    def __init__(self, unit_of_work, default_payment_method: str):
        self._uow = unit_of_work
        self._default_payment_method = default_payment_method

    async def __call__(self, requester: Requester, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа для пользователя {requester.id}, позиций: {len(order_data.items)}")

        if not order_data.items:
            raise ValidationError("В заказе нет товаров")

        payment_method = order_data.payment_method or self._default_payment_method

        # Списание остатков и создание заказа в одной транзакции:
        # ошибка на любой позиции откатывает все списания этого запроса
        async with self._uow() as uow:
            order_items = []
            for line in order_data.items:
                if line.quantity <= 0:
                    raise ValidationError(f"Некорректное количество для товара {line.product_id}")

                product = await uow.products.get_by_id(line.product_id)
                if not product:
                    raise ProductNotFoundError(line.product_id)
                if product.stock < line.quantity:
                    raise InsufficientStockError(product.name, product.stock, line.quantity)

                # Условное списание защищает от гонки между чтением и записью
                if not await uow.products.decrement_stock(product.id, line.quantity):
                    current = await uow.products.get_by_id(product.id)
                    available = current.stock if current else 0
                    raise InsufficientStockError(product.name, available, line.quantity)

                order_items.append(OrderItem(
                    product_id=product.id,
                    quantity=line.quantity,
                    price=product.price,
                    size=line.size,
                    color=line.color
                ))

            now = datetime.now(timezone.utc)
            order = Order(
                id=str(uuid.uuid4()),
                user_id=requester.id,
                items=order_items,
                total_amount=calculate_total(order_items, payment_method),
                shipping_address=order_data.shipping_address,
                payment_info=PaymentInfo(method=payment_method),
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now
            )
            await uow.orders.create(order)
            await uow.commit()

        logger.info(f"Заказ создан: {order.id}, сумма {order.total_amount}")
        return order
