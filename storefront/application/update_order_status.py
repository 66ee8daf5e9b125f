import logging
from datetime import datetime, timezone
from typing import Optional

from storefront.domain.models import Order, OrderStatus
from storefront.domain.exceptions import OrderNotFoundError, InvalidStateError
from storefront.application.cancel_order import restore_stock_and_cancel

logger = logging.getLogger(__name__)

ADMIN_CANCELLATION_REASON = "Отменён администратором"


class UpdateOrderStatusUseCase:
    """Смена статуса администратором. Права проверяются на уровне API."""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, status: OrderStatus, reason: Optional[str] = None) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)

            previous = order.status
            if status == OrderStatus.CANCELLED:
                # Отмена всегда идёт через возврат остатков
                await restore_stock_and_cancel(uow, order, reason or ADMIN_CANCELLATION_REASON)
            else:
                order.transition_to(status)
                order.updated_at = datetime.now(timezone.utc)
                if not await uow.orders.save(order, expected_status=previous):
                    raise InvalidStateError(f"Заказ {order_id} уже изменён другим запросом")
            await uow.commit()

        logger.info(f"Статус заказа {order_id} изменён: {previous.value} -> {order.status.value}")
        return order
