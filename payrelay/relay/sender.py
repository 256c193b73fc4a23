"""Outbound relay of payment events to subscriber endpoints.

Every attempt is a single JSON POST. A 2xx response ends the loop; anything
else (including transport errors, reported as status 0) is recorded and
retried after ``2**attempt * backoff_base_ms`` milliseconds until the attempt
budget is spent. Each attempt leaves exactly one row in the audit log.
"""
from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payrelay.config import Settings
from payrelay.models.enums import DeliverySource
from payrelay.relay.audit import append_delivery_log

logger = structlog.get_logger(__name__)

_FALLBACK_ERROR = "delivery failed"

@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    status: int
    body: str

def truncate_body(body: str | None, limit: int) -> str:
    return (body or "")[:limit]

def backoff_ms(attempt: int, base_ms: int) -> int:
    return (2 ** attempt) * base_ms

class RelaySender:
    def __init__(
        self,
        db: Session,
        *,
        max_attempts: int = 3,
        backoff_base_ms: int = 1000,
        body_limit: int = 1000,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.body_limit = body_limit
        self.timeout = timeout
        self.transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, db: Session, s: Settings, **kwargs) -> RelaySender:
        return cls(
            db,
            max_attempts=s.relay_max_attempts,
            backoff_base_ms=s.relay_backoff_base_ms,
            body_limit=s.relay_body_limit,
            timeout=s.relay_timeout_seconds,
            **kwargs,
        )

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict = {"transport": self.transport}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return httpx.AsyncClient(**kwargs)

    async def _attempt(self, client: httpx.AsyncClient, url: str, payload: dict) -> DeliveryResult:
        try:
            resp = await client.post(url, json=payload, headers={"Content-Type": "application/json"})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return DeliveryResult(False, 0, truncate_body(str(e) or _FALLBACK_ERROR, self.body_limit))

        return DeliveryResult(
            success=resp.is_success,
            status=resp.status_code,
            body=truncate_body(resp.text, self.body_limit),
        )

    def _record(
        self,
        result: DeliveryResult,
        *,
        url: str,
        payload: dict,
        owner_id: uuid.UUID,
        source: str,
        payment_id: str | None,
    ) -> None:
        try:
            append_delivery_log(
                self.db,
                user_id=owner_id,
                event_type=str(payload.get("event_type") or "unknown"),
                webhook_url=url,
                success=result.success,
                status=result.status,
                body=result.body,
                source=source,
                payment_id=payment_id,
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("webhook_log_write_failed", webhook_url=url, status=result.status)

    async def deliver(
        self,
        url: str,
        payload: dict,
        owner_id: uuid.UUID,
        *,
        source: str = DeliverySource.mercado_pago.value,
        payment_id: str | None = None,
    ) -> DeliveryResult:
        last = DeliveryResult(False, 0, f"{_FALLBACK_ERROR} after {self.max_attempts} attempts")

        async with self._client() as client:
            for attempt in range(1, self.max_attempts + 1):
                log = logger.bind(webhook_url=url, attempt=attempt, max_attempts=self.max_attempts, source=source)
                log.info("webhook_delivery_attempt")

                result = await self._attempt(client, url, payload)
                self._record(result, url=url, payload=payload, owner_id=owner_id, source=source, payment_id=payment_id)

                if result.success:
                    log.info("webhook_delivered", status=result.status)
                    return result

                last = result
                log.warning("webhook_delivery_failed", status=result.status)

                if attempt < self.max_attempts:
                    delay = backoff_ms(attempt, self.backoff_base_ms)
                    log.info("webhook_delivery_backoff", delay_ms=delay)
                    await self._sleep(delay / 1000)

        logger.error("webhook_delivery_exhausted", webhook_url=url, status=last.status, source=source)
        return last
