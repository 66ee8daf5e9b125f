from sqlalchemy import Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, JSON, Text, MetaData
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus

metadata = MetaData()


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False, index=True),
    Column("description", Text, nullable=False, default=""),
    Column("price", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("category", String, nullable=False, index=True),
    Column("image_url", String, nullable=False, default=""),
    Column("sizes", JSON, nullable=False),
    Column("colors", JSON, nullable=False),
    Column("featured", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


# Позиции, адрес и данные оплаты хранятся документом внутри заказа
orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("items", JSON, nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("shipping_address", JSON, nullable=False),
    Column("payment_info", JSON, nullable=False),
    Column(
        "status",
        Enum(OrderStatus, values_callable=lambda statuses: [s.value for s in statuses]),
        default=OrderStatus.PENDING
    ),
    Column("cancellation_reason", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)
