"""Tests for payment order creation, signature verification and the gateway client."""

import hashlib
import hmac
import json
import logging
from decimal import Decimal

import httpx
import pytest

from conftest import FakePaymentGateway, GATEWAY_SECRET
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.process_payment import (
    CreatePaymentOrderUseCase, CreatePaymentOrderDTO, VerifyPaymentUseCase, VerifyPaymentDTO,
    compute_signature, to_minor_units
)
from storefront.domain.models import OrderStatus, PaymentStatus
from storefront.domain.exceptions import (
    ValidationError, VerificationFailedError, PaymentGatewayError, UnexpectedError,
    InvalidStateError
)
from storefront.infrastructure.http_clients import HTTPPaymentGatewayClient


def flip_last_bit(signature: str) -> str:
    last = int(signature[-1], 16) ^ 1
    return signature[:-1] + format(last, "x")


@pytest.fixture
def verify(uow):
    return VerifyPaymentUseCase(uow, GATEWAY_SECRET, "Razorpay")


@pytest.fixture
async def pending_order(uow, make_product, user):
    product = await make_product(price="100", stock=5)
    dto = CreateOrderDTO(items=[OrderLineDTO(product_id=product.id, quantity=1)])
    return await CreateOrderUseCase(uow, "Razorpay")(user, dto)


class TestSignature:
    def test_matches_hmac_sha256_of_joined_ids(self):
        expected = hmac.new(
            b"secret", b"order_abc|pay_xyz", hashlib.sha256
        ).hexdigest()

        assert compute_signature("secret", "order_abc", "pay_xyz") == expected

    def test_depends_on_both_ids(self):
        assert compute_signature("s", "a", "b") != compute_signature("s", "b", "a")


class TestVerifyPayment:
    async def test_valid_signature_marks_order_processing(self, verify, pending_order, uow):
        signature = compute_signature(GATEWAY_SECRET, "order_1", "pay_1")

        result = await verify(VerifyPaymentDTO(
            gateway_order_id="order_1",
            gateway_payment_id="pay_1",
            signature=signature,
            order_id=pending_order.id,
        ))

        assert result["success"] is True
        assert result["order_id"] == "order_1"
        assert result["payment_id"] == "pay_1"
        async with uow() as tx:
            order = await tx.orders.get_by_id(pending_order.id)
        assert order.status == OrderStatus.PROCESSING
        assert order.payment_info.status == PaymentStatus.COMPLETED
        assert order.payment_info.id == "pay_1"
        assert order.payment_info.method == "Razorpay"
        assert order.total_amount == Decimal("100")

    async def test_tampered_signature_is_rejected(self, verify, pending_order, uow):
        signature = flip_last_bit(compute_signature(GATEWAY_SECRET, "order_1", "pay_1"))

        with pytest.raises(VerificationFailedError):
            await verify(VerifyPaymentDTO(
                gateway_order_id="order_1",
                gateway_payment_id="pay_1",
                signature=signature,
                order_id=pending_order.id,
            ))

        async with uow() as tx:
            order = await tx.orders.get_by_id(pending_order.id)
        assert order.status == OrderStatus.PENDING
        assert order.payment_info.status == PaymentStatus.PENDING

    async def test_wrong_secret_is_rejected(self, verify):
        with pytest.raises(VerificationFailedError):
            await verify(VerifyPaymentDTO(
                gateway_order_id="order_1",
                gateway_payment_id="pay_1",
                signature=compute_signature("other-secret", "order_1", "pay_1"),
            ))

    async def test_missing_local_order_still_succeeds(self, verify, caplog):
        signature = compute_signature(GATEWAY_SECRET, "order_1", "pay_1")

        with caplog.at_level(logging.ERROR):
            result = await verify(VerifyPaymentDTO(
                gateway_order_id="order_1",
                gateway_payment_id="pay_1",
                signature=signature,
                order_id="missing-order",
            ))

        assert result["success"] is True
        assert "missing-order" in caplog.text

    async def test_without_local_order(self, verify):
        signature = compute_signature(GATEWAY_SECRET, "order_1", "pay_1")

        result = await verify(VerifyPaymentDTO(
            gateway_order_id="order_1", gateway_payment_id="pay_1", signature=signature
        ))

        assert result["success"] is True

    @pytest.mark.parametrize("field", ["gateway_order_id", "gateway_payment_id", "signature"])
    async def test_all_gateway_fields_required(self, verify, field):
        data = {"gateway_order_id": "o", "gateway_payment_id": "p", "signature": "s"}
        data[field] = ""

        with pytest.raises(ValidationError):
            await verify(VerifyPaymentDTO(**data))

    async def test_cancelled_order_keeps_status(self, verify, pending_order, uow, user):
        await CancelOrderUseCase(uow)(user, pending_order.id, "changed mind")

        await verify(VerifyPaymentDTO(
            gateway_order_id="order_1",
            gateway_payment_id="pay_1",
            signature=compute_signature(GATEWAY_SECRET, "order_1", "pay_1"),
            order_id=pending_order.id,
        ))

        async with uow() as tx:
            order = await tx.orders.get_by_id(pending_order.id)
        assert order.status == OrderStatus.CANCELLED
        assert order.payment_info.status == PaymentStatus.COMPLETED

    async def test_order_cancelled_during_verification(
        self, verify, pending_order, uow, cancel_on_first_load
    ):
        cancel_on_first_load(pending_order.id)

        with pytest.raises(InvalidStateError):
            await verify(VerifyPaymentDTO(
                gateway_order_id="order_1",
                gateway_payment_id="pay_1",
                signature=compute_signature(GATEWAY_SECRET, "order_1", "pay_1"),
                order_id=pending_order.id,
            ))

        async with uow() as tx:
            order = await tx.orders.get_by_id(pending_order.id)
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "cancelled meanwhile"


class TestCreatePaymentOrder:
    async def test_amount_is_sent_in_minor_units(self):
        gateway = FakePaymentGateway()

        result = await CreatePaymentOrderUseCase(gateway)(
            CreatePaymentOrderDTO(amount=Decimal("499.99"), receipt="rcpt_1")
        )

        assert gateway.calls == [(49999, "INR", "rcpt_1")]
        assert result["id"] == "order_1"

    async def test_amount_required(self):
        gateway = FakePaymentGateway()

        with pytest.raises(ValidationError):
            await CreatePaymentOrderUseCase(gateway)(CreatePaymentOrderDTO(amount=Decimal("0")))
        assert gateway.calls == []

    def test_minor_units_rounding(self):
        assert to_minor_units(Decimal("10.005")) == 1001
        assert to_minor_units(Decimal("250")) == 25000


class TestHTTPPaymentGatewayClient:
    async def test_create_order(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_gw_1", "amount": 25000})

        client = HTTPPaymentGatewayClient(
            "https://gateway.test/v1/", "key_id", "key_secret", transport=httpx.MockTransport(handler)
        )

        result = await client.create_order(25000, "INR", "rcpt_7")

        assert result["id"] == "order_gw_1"
        assert captured["url"] == "https://gateway.test/v1/orders"
        assert captured["auth"].startswith("Basic ")
        assert captured["body"] == {
            "amount": 25000, "currency": "INR", "receipt": "rcpt_7", "payment_capture": 1
        }

    async def test_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        client = HTTPPaymentGatewayClient("https://gateway.test/v1", "id", "secret", transport=transport)

        with pytest.raises(PaymentGatewayError):
            await client.create_order(100, "INR", None)

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = HTTPPaymentGatewayClient(
            "https://gateway.test/v1", "id", "secret", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(UnexpectedError):
            await client.create_order(100, "INR", None)
