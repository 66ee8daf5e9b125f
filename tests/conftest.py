"""Pytest fixtures for storefront tests."""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["POSTGRES_CONNECTION_STRING"] = ""
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/app.db"
os.environ["UPLOADS_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["PAYMENT_GATEWAY_KEY_SECRET"] = "test_gateway_secret"
os.environ["PAYMENT_GATEWAY_NAME"] = "Razorpay"

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from storefront.database import create_tables
from storefront.domain.models import Product, Requester, UserRole
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.image_storage import LocalImageStorage
from storefront.infrastructure.repositories import SQLAlchemyOrderRepository
from storefront.application.cancel_order import CancelOrderUseCase


GATEWAY_SECRET = "test_gateway_secret"


class FakePaymentGateway:
    """Records calls instead of talking to the real gateway."""

    def __init__(self):
        self.calls = []

    async def create_order(self, amount, currency, receipt):
        self.calls.append((amount, currency, receipt))
        return {
            "id": f"order_{len(self.calls)}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }


def build_engine(db_path):
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)


@pytest.fixture
async def engine(tmp_path):
    db_engine = build_engine(tmp_path / "test.db")
    await create_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def uow(engine):
    return UnitOfWork(async_sessionmaker(engine, expire_on_commit=False))


@pytest.fixture
def image_storage(tmp_path):
    return LocalImageStorage(str(tmp_path / "uploads"))


@pytest.fixture
def user():
    return Requester(id="user-1", role=UserRole.USER)


@pytest.fixture
def other_user():
    return Requester(id="user-2", role=UserRole.USER)


@pytest.fixture
def admin():
    return Requester(id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def make_product(uow):
    """Insert a product and return it."""

    async def _make(
        name="T-Shirt",
        price="100",
        stock=10,
        category="clothing",
        featured=False,
        image_url="https://cdn.example.com/shirt.png",
    ):
        now = datetime.now(timezone.utc)
        product = Product(
            id=str(uuid.uuid4()),
            name=name,
            price=Decimal(price),
            stock=stock,
            category=category,
            image_url=image_url,
            sizes=["S", "M", "L"],
            colors=["black"],
            featured=featured,
            created_at=now,
            updated_at=now,
        )
        async with uow() as tx:
            await tx.products.create(product)
            await tx.commit()
        return product

    return _make


@pytest.fixture
def get_stock(uow):
    async def _get(product_id):
        async with uow() as tx:
            product = await tx.products.get_by_id(product_id)
            return product.stock if product else None

    return _get


@pytest.fixture
def cancel_on_first_load(monkeypatch, uow, user):
    """Cancel an order in its own transaction right after the code under test loads it.

    Reproduces a second request committing between read and write.
    """

    def _install(order_id):
        original = SQLAlchemyOrderRepository.get_by_id
        raced = []

        async def get_then_cancel(repo, requested_id):
            order = await original(repo, requested_id)
            if requested_id == order_id and not raced:
                raced.append(requested_id)
                await CancelOrderUseCase(uow)(user, requested_id, "cancelled meanwhile")
            return order

        monkeypatch.setattr(SQLAlchemyOrderRepository, "get_by_id", get_then_cancel)

    return _install
