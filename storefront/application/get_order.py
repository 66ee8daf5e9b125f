from storefront.domain.models import Order, Requester
from storefront.domain.exceptions import OrderNotFoundError
from storefront.domain.policies import ensure_can_access


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, requester: Requester, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)
            ensure_can_access(requester, order.user_id)
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str | None = None) -> list[Order]:
        """Без user_id возвращает все заказы (для администратора)"""
        async with self._uow() as uow:
            if user_id is None:
                return await uow.orders.list_all()
            return await uow.orders.list_by_user(user_id)
