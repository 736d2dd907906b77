import logging
import uuid
from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from checkout_webhook.provider.models import MerchantOrderDetails, PaymentDetails

logger = logging.getLogger(__name__)

MP_API_BASE = "https://api.mercadopago.com"
IDEMPOTENCY_HEADER = "X-Idempotency-Key"


class ProviderLookupError(Exception):
    """Raised when a payment or merchant order can't be fetched from the provider."""

    def __init__(self, resource: str, resource_id: str, message: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id}: {message}")


class ProviderLookup(Protocol):
    async def get_payment(self, payment_id: str) -> PaymentDetails: ...

    async def get_merchant_order(self, order_id: str) -> MerchantOrderDetails: ...


def new_idempotency_key() -> str:
    """Fresh token for one logical creation attempt."""
    return str(uuid.uuid4())


def idempotency_headers(key: str | None = None) -> dict[str, str]:
    """Headers for a creation request.

    Pass the key of a previous attempt when retrying it; omit it to start a
    new attempt.
    """
    return {IDEMPOTENCY_HEADER: key or new_idempotency_key()}


class MercadoPagoClient:
    def __init__(
        self,
        access_token: str,
        base_url: str = MP_API_BASE,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, resource: str, resource_id: str, prefix: str) -> dict:
        # the id must stay a single path segment
        if resource_id in ("", ".", ".."):
            raise ProviderLookupError(resource, resource_id, "invalid id")
        url = f"{prefix}/{quote(resource_id, safe='')}"
        try:
            resp = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProviderLookupError(resource, resource_id, f"request failed: {e!r}") from e

        if resp.status_code != 200:
            raise ProviderLookupError(
                resource, resource_id, f"unexpected status {resp.status_code}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderLookupError(resource, resource_id, "response is not JSON") from e

    async def get_payment(self, payment_id: str) -> PaymentDetails:
        data = await self._get("payment", payment_id, "/v1/payments")
        try:
            return PaymentDetails.model_validate(data)
        except ValidationError as e:
            raise ProviderLookupError("payment", payment_id, "invalid payment body") from e

    async def get_merchant_order(self, order_id: str) -> MerchantOrderDetails:
        data = await self._get("merchant_order", order_id, "/merchant_orders")
        try:
            return MerchantOrderDetails.model_validate(data)
        except ValidationError as e:
            raise ProviderLookupError(
                "merchant_order", order_id, "invalid merchant order body"
            ) from e
