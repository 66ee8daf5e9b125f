import httpx
import logging
from typing import Optional

from storefront.domain.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


class HTTPPaymentGatewayClient:
    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url.rstrip("/")
        self._key_id = key_id
        self._key_secret = key_secret
        self._transport = transport

    async def create_order(self, amount: int, currency: str, receipt: Optional[str]) -> dict:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/orders",
                    json=payload,
                    auth=(self._key_id, self._key_secret),
                    timeout=30.0
                )

                if response.status_code in (200, 201):
                    return response.json()
                else:
                    logger.error(f"Payment gateway вернул {response.status_code}: {response.text}")
                    raise PaymentGatewayError(f"Payment gateway ошибка: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Payment gateway ошибка подключения: {e}")
            raise PaymentGatewayError(f"Payment gateway не доступен: {str(e)}")
