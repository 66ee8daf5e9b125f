import hashlib
import hmac
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel
from typing import Optional

from storefront.domain.models import OrderStatus, PaymentInfo, PaymentStatus
from storefront.domain.exceptions import ValidationError, VerificationFailedError, InvalidStateError
from storefront.application.interfaces import PaymentGateway

logger = logging.getLogger(__name__)


class CreatePaymentOrderDTO(BaseModel):
    amount: Decimal
    currency: str = "INR"
    receipt: Optional[str] = None


class VerifyPaymentDTO(BaseModel):
    gateway_order_id: str
    gateway_payment_id: str
    signature: str
    order_id: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """HMAC-SHA256 от "{order_id}|{payment_id}" в hex"""
    body = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


class CreatePaymentOrderUseCase:
    def __init__(self, payment_gateway: PaymentGateway):
        self._gateway = payment_gateway

    async def __call__(self, dto: CreatePaymentOrderDTO) -> dict:
        if dto.amount <= 0:
            raise ValidationError("Необходимо указать сумму")

        amount = to_minor_units(dto.amount)
        logger.info(f"Создание платёжного заказа: {amount} {dto.currency}, receipt={dto.receipt}")
        gateway_order = await self._gateway.create_order(amount, dto.currency, dto.receipt)
        logger.info(f"Платёжный заказ создан: {gateway_order.get('id')}")
        return gateway_order


class VerifyPaymentUseCase:
    def __init__(self, unit_of_work, key_secret: str, gateway_name: str):
        self._uow = unit_of_work
        self._key_secret = key_secret
        self._gateway_name = gateway_name

    async def __call__(self, dto: VerifyPaymentDTO) -> dict:
        if not dto.gateway_order_id or not dto.gateway_payment_id or not dto.signature:
            raise ValidationError("Необходимо передать все данные платежа")

        expected = compute_signature(self._key_secret, dto.gateway_order_id, dto.gateway_payment_id)
        if not hmac.compare_digest(expected, dto.signature):
            logger.error(f"Подпись платежа {dto.gateway_payment_id} не совпала")
            raise VerificationFailedError("Не удалось подтвердить платёж")

        if dto.order_id:
            await self._apply_to_order(dto)

        return {
            "success": True,
            "message": "Платёж успешно подтверждён",
            "order_id": dto.gateway_order_id,
            "payment_id": dto.gateway_payment_id,
        }

    async def _apply_to_order(self, dto: VerifyPaymentDTO) -> None:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                # Платёж подтверждён, отсутствие заказа не ошибка для клиента
                logger.error(f"Заказ {dto.order_id} не найден при подтверждении платежа")
                return

            previous = order.status
            order.payment_info = PaymentInfo(
                id=dto.gateway_payment_id,
                status=PaymentStatus.COMPLETED,
                method=self._gateway_name
            )
            if order.can_transition_to(OrderStatus.PROCESSING):
                order.transition_to(OrderStatus.PROCESSING)
            else:
                logger.warning(
                    f"Заказ {order.id} оплачен, но остаётся в статусе {order.status.value}"
                )
            order.updated_at = datetime.now(timezone.utc)
            if not await uow.orders.save(order, expected_status=previous):
                logger.error(f"Заказ {order.id} изменён во время подтверждения платежа {dto.gateway_payment_id}")
                raise InvalidStateError(f"Заказ {order.id} уже изменён другим запросом")
            await uow.commit()

        logger.info(f"Заказ {dto.order_id} обновлён данными платежа {dto.gateway_payment_id}")
