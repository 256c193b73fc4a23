from __future__ import annotations

import json
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from payrelay.auth.deps import get_current_profile
from payrelay.billing.deps import get_reconciler, get_relay_sender
from payrelay.billing.reconciler import PaymentReconciler
from payrelay.config import settings
from payrelay.db import get_db
from payrelay.errors import RelayError, ValidationError
from payrelay.models.enums import DeliverySource, EventType, PaymentStatus
from payrelay.models.profile import Profile
from payrelay.models.webhook_subscription import WebhookSubscription
from payrelay.ratelimit import rate_limit
from payrelay.relay.audit import recent_delivery_logs
from payrelay.relay.sender import RelaySender
from payrelay.schemas.webhooks import (
    DeliveryLogOut,
    ManualTestIn,
    ManualTestOut,
    SubscriptionIn,
    SubscriptionOut,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

TEST_AMOUNT = 39.0

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

@router.post("/payment")
async def payment_webhook(
    request: Request,
    reconciler: PaymentReconciler = Depends(get_reconciler),
    _: None = Depends(
        rate_limit(
            "webhooks:payment",
            limit_per_window=settings.rate_limit_webhooks_per_min,
            window_seconds=60,
        )
    ),
) -> dict:
    raw = await request.body()
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("invalid json")

    try:
        return await reconciler.reconcile(payload)
    except RelayError:
        raise
    except Exception as e:
        logger.exception("payment_webhook_failed", error=f"{type(e).__name__}: {e}")
        raise RelayError("webhook processing failed")

def _test_payload(profile: Profile) -> dict:
    return {
        "event_type": EventType.test.value,
        "payment_id": f"test_{int(time.time() * 1000)}",
        "email": profile.email,
        "amount": TEST_AMOUNT,
        "status": PaymentStatus.test.value,
        "payment_method": "test",
        "timestamp": _now_utc().isoformat(),
    }

@router.post("/test", response_model=ManualTestOut)
async def send_test_webhook(
    payload: ManualTestIn,
    profile: Profile = Depends(get_current_profile),
    sender: RelaySender = Depends(get_relay_sender),
    _: None = Depends(
        rate_limit(
            "webhooks:test",
            limit_per_window=settings.rate_limit_webhook_tests_per_min,
            window_seconds=60,
        )
    ),
) -> ManualTestOut:
    url = str(payload.webhook_url)
    body = _test_payload(profile)
    logger.info("webhook_test_requested", owner_id=str(profile.id), webhook_url=url)

    result = await sender.deliver(
        url,
        body,
        profile.id,
        source=DeliverySource.manual_test.value,
        payment_id=body["payment_id"],
    )

    return ManualTestOut(
        success=result.success,
        status=result.status,
        message="webhook test succeeded" if result.success else "webhook test failed",
        response=result.body,
    )

def _subscription_out(sub: WebhookSubscription) -> SubscriptionOut:
    return SubscriptionOut(id=sub.id, webhook_url=sub.webhook_url, is_active=sub.is_active)

@router.get("/settings", response_model=SubscriptionOut | None)
def get_settings(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> SubscriptionOut | None:
    sub = db.scalar(select(WebhookSubscription).where(WebhookSubscription.user_id == profile.id))
    return _subscription_out(sub) if sub else None

@router.put("/settings", response_model=SubscriptionOut)
def save_settings(
    payload: SubscriptionIn,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> SubscriptionOut:
    sub = db.scalar(select(WebhookSubscription).where(WebhookSubscription.user_id == profile.id))
    if sub is None:
        sub = WebhookSubscription(user_id=profile.id, webhook_url=str(payload.webhook_url), is_active=payload.is_active)
        db.add(sub)
    else:
        sub.webhook_url = str(payload.webhook_url)
        sub.is_active = payload.is_active
    db.commit()
    db.refresh(sub)
    return _subscription_out(sub)

@router.get("/logs", response_model=list[DeliveryLogOut])
def list_logs(
    limit: int = Query(default=10, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> list[DeliveryLogOut]:
    rows = recent_delivery_logs(db, profile.id, limit=limit)
    return [
        DeliveryLogOut(
            id=r.id,
            event_type=r.event_type,
            webhook_url=r.webhook_url,
            success=r.success,
            response_status=r.response_status,
            response_body=r.response_body,
            source=r.source,
            payment_id=r.payment_id,
            created_at=r.created_at,
        )
        for r in rows
    ]
