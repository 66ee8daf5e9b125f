from abc import ABC, abstractmethod
from typing import Optional, List
from storefront.domain.models import Order, OrderStatus, Product


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def find(
        self,
        category: Optional[str] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None
    ) -> List[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def update(self, product_id: str, values: dict) -> None:
        """Обновляет только переданные поля"""
        pass

    @abstractmethod
    async def delete(self, product_id: str) -> None:
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Атомарно уменьшает остаток, только если его хватает. False, если не хватило."""
        pass

    @abstractmethod
    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        """Возвращает остаток. False, если товара больше нет."""
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Order]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def save(self, order: Order, expected_status: OrderStatus) -> bool:
        """Compare-and-set по статусу. False, если статус успел измениться."""
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentGateway(ABC):
    @abstractmethod
    async def create_order(self, amount: int, currency: str, receipt: Optional[str]) -> dict:
        """amount: в минимальных единицах валюты (копейки, пайсы)"""
        pass


class ImageStorage(ABC):
    @abstractmethod
    async def save(self, filename: str, content_type: str, data: bytes) -> str:
        pass

    @abstractmethod
    async def delete(self, url: str) -> None:
        pass
