from __future__ import annotations

import uuid
from urllib.parse import quote

import httpx
import structlog

from payrelay.config import Settings
from payrelay.errors import ConfigError, UpstreamLookupError

logger = structlog.get_logger(__name__)

class PaymentProcessorClient:
    """Thin bearer-authenticated client for the payment processor REST API."""

    def __init__(
        self,
        access_token: str | None,
        base_url: str = "https://api.mercadopago.com",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, s: Settings, **kwargs) -> PaymentProcessorClient:
        return cls(s.MERCADO_PAGO_ACCESS_TOKEN, s.payment_api_base_url, **kwargs)

    @property
    def configured(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            raise ConfigError("payment processor token not configured", missing=["MERCADO_PAGO_ACCESS_TOKEN"])
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, f"{self.base_url}{path}", headers=headers, json=json)
        except httpx.HTTPError as e:
            logger.error("processor_request_failed", path=path, error=f"{type(e).__name__}: {e}")
            raise UpstreamLookupError("payment processor unreachable") from e

        if not resp.is_success:
            logger.error("processor_request_rejected", path=path, status=resp.status_code, body=resp.text[:1000])
            raise UpstreamLookupError("payment processor request failed", upstream_status=resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamLookupError("payment processor returned invalid json") from e

        if not isinstance(body, dict):
            logger.error("processor_response_unexpected", path=path, body_type=type(body).__name__)
            raise UpstreamLookupError("payment processor returned an unexpected body")
        return body

    async def fetch_payment(self, payment_id: str) -> dict:
        return await self._request("GET", f"/v1/payments/{quote(payment_id, safe='')}")

    async def create_preference(
        self,
        *,
        owner_id: uuid.UUID,
        payer_email: str,
        title: str,
        unit_price: float,
        currency: str,
    ) -> dict:
        # external_reference ties the resulting payment back to its owner
        preference = {
            "items": [
                {
                    "title": title,
                    "quantity": 1,
                    "unit_price": unit_price,
                    "currency_id": currency,
                }
            ],
            "payer": {"email": payer_email},
            "external_reference": str(owner_id),
        }
        return await self._request("POST", "/checkout/preferences", json=preference)
