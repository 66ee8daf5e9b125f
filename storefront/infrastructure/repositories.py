from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import Order, OrderItem, OrderStatus, PaymentInfo, Product
from storefront.infrastructure.db_schema import products_tbl, orders_tbl
from storefront.application.interfaces import ProductRepository, OrderRepository


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def find(
        self,
        category: Optional[str] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None
    ) -> List[Product]:
        stmt = select(products_tbl)
        if category:
            stmt = stmt.where(products_tbl.c.category == category)
        if featured:
            stmt = stmt.where(products_tbl.c.featured.is_(True))
        if search:
            stmt = stmt.where(
                func.lower(products_tbl.c.name).contains(search.lower(), autoescape=True)
            )
        result = await self._session.execute(stmt.order_by(products_tbl.c.created_at.asc()))
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(**self._to_row(product))
        await self._session.execute(stmt)

    async def update(self, product_id: str, values: dict) -> None:
        # Пишем только переданные поля: остаток меняют параллельные заказы
        values = {key: value for key, value in values.items() if key not in ("id", "created_at")}
        if not values:
            return
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(**values)
        )
        await self._session.execute(stmt)

    async def delete(self, product_id: str) -> None:
        await self._session.execute(
            delete(products_tbl).where(products_tbl.c.id == product_id)
        )

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        # Проверка и списание одним UPDATE
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id, products_tbl.c.stock >= quantity)
            .values(
                stock=products_tbl.c.stock - quantity,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(
                stock=products_tbl.c.stock + quantity,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_row(self, product: Product) -> dict:
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "stock": product.stock,
            "category": product.category,
            "image_url": product.image_url,
            "sizes": list(product.sizes),
            "colors": list(product.colors),
            "featured": product.featured,
            "created_at": product.created_at,
            "updated_at": product.updated_at
        }

    def _to_domain(self, row) -> Product:
        """Трансформация DB → Domain"""
        return Product(
            id=row.id,
            name=row.name,
            description=row.description or "",
            price=row.price,
            stock=row.stock,
            category=row.category,
            image_url=row.image_url or "",
            sizes=row.sizes or [],
            colors=row.colors or [],
            featured=row.featured,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_all(self) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl).order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_by_user(self, user_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            user_id=order.user_id,
            items=[item.model_dump(mode="json") for item in order.items],
            total_amount=order.total_amount,
            shipping_address=order.shipping_address,
            payment_info=order.payment_info.model_dump(mode="json"),
            status=order.status,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)

    async def save(self, order: Order, expected_status: OrderStatus) -> bool:
        """Сохраняет заказ, только если его статус в БД всё ещё expected_status"""
        # Сумма и позиции после создания не меняются
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order.id, orders_tbl.c.status == expected_status)
            .values(
                shipping_address=order.shipping_address,
                payment_info=order.payment_info.model_dump(mode="json"),
                status=order.status,
                cancellation_reason=order.cancellation_reason,
                updated_at=order.updated_at
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            items=[OrderItem(**item) for item in row.items],
            total_amount=row.total_amount,
            shipping_address=row.shipping_address or {},
            payment_info=PaymentInfo(**row.payment_info),
            status=OrderStatus(row.status),
            cancellation_reason=row.cancellation_reason,
            created_at=row.created_at,
            updated_at=row.updated_at
        )
