import logging
from datetime import datetime, timezone

from storefront.domain.models import Order, Requester
from storefront.domain.exceptions import ValidationError, OrderNotFoundError, InvalidStateError
from storefront.domain.policies import ensure_can_access

logger = logging.getLogger(__name__)


async def restore_stock_and_cancel(uow, order: Order, reason: str) -> None:
    """Отмена заказа с возвратом остатков внутри уже открытого unit of work"""
    previous = order.status
    order.cancel(reason)
    order.updated_at = datetime.now(timezone.utc)

    # Статус меняется раньше возврата остатков: параллельная отмена
    # не пройдёт compare-and-set и остатки не вернутся дважды
    if not await uow.orders.save(order, expected_status=previous):
        raise InvalidStateError(f"Заказ {order.id} уже изменён другим запросом")

    for item in order.items:
        restored = await uow.products.increment_stock(item.product_id, item.quantity)
        if not restored:
            logger.warning(
                f"Товар {item.product_id} удалён, остаток для заказа {order.id} не возвращён"
            )


class CancelOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, requester: Requester, order_id: str, reason: str | None) -> Order:
        if not reason or not reason.strip():
            raise ValidationError("Необходимо указать причину отмены")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)

            ensure_can_access(requester, order.user_id)

            await restore_stock_and_cancel(uow, order, reason)
            await uow.commit()

        logger.info(f"Заказ {order_id} отменён пользователем {requester.id}. Причина: {reason}")
        return order
