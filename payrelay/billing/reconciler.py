"""Reconciles inbound payment notifications against the processor.

Validation and the processor lookup are the only steps allowed to fail the
request. Everything after a successful lookup is best-effort: ledger,
entitlement and relay failures are logged and the processor still gets its
acknowledgment.
"""
from __future__ import annotations

import uuid
import warnings
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payrelay.billing.entitlements import active_subscription_for, grant_premium, resolve_owner
from payrelay.billing.ledger import upsert_payment
from payrelay.billing.processor import PaymentProcessorClient
from payrelay.errors import PersistenceWarning, ValidationError
from payrelay.models.enums import DeliverySource, EventType, PaymentStatus
from payrelay.models.profile import Profile
from payrelay.relay.sender import RelaySender

logger = structlog.get_logger(__name__)

ACK = {"success": True}

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _reference_email(payment: dict) -> str | None:
    # checkout puts a profile id here; only a non-id reference can stand in for an email
    ref = payment.get("external_reference")
    if not ref:
        return None
    try:
        uuid.UUID(str(ref))
    except ValueError:
        return str(ref)
    return None

def _payer_email(payment: dict, owner: Profile | None = None) -> str | None:
    payer = payment.get("payer")
    email = payer.get("email") if isinstance(payer, dict) else None
    return email or (owner.email if owner else None) or _reference_email(payment)

def _payment_method(payment: dict) -> str | None:
    return payment.get("payment_type_id") or payment.get("payment_method_id")

def build_relay_payload(payment: dict, owner: Profile | None = None) -> dict:
    return {
        "event_type": EventType.payment_success.value,
        "payment_id": str(payment["id"]),
        "email": _payer_email(payment, owner),
        "amount": payment.get("transaction_amount"),
        "status": payment.get("status"),
        "payment_method": _payment_method(payment),
        "timestamp": _now_utc().isoformat(),
    }

class PaymentReconciler:
    def __init__(self, db: Session, processor: PaymentProcessorClient, sender: RelaySender):
        self.db = db
        self.processor = processor
        self.sender = sender

    async def reconcile(self, notification: dict) -> dict:
        if not isinstance(notification, dict):
            raise ValidationError("notification must be a json object")

        event_type = notification.get("type")
        if event_type != EventType.payment.value:
            logger.info("payment_notification_ignored", event_type=event_type)
            return dict(ACK)

        data = notification.get("data")
        payment_id = data.get("id") if isinstance(data, dict) else None
        if not payment_id:
            raise ValidationError("payment id not found")

        log = logger.bind(payment_id=str(payment_id))
        log.info("payment_notification_received")

        # raises UpstreamLookupError / ConfigError before anything is written
        payment = await self.processor.fetch_payment(str(payment_id))
        payment.setdefault("id", payment_id)
        status = payment.get("status")
        email = _payer_email(payment)
        log = log.bind(status=status)

        owner = self._resolve_owner(payment, email)

        self._record_payment(payment, owner)

        if status != PaymentStatus.approved.value:
            log.info("payment_not_approved")
            return dict(ACK)

        log.info("payment_approved", owner_id=str(owner.id) if owner else None)
        if owner is None:
            log.warning("payment_owner_not_found", email=email)
            return dict(ACK)

        self._grant_entitlement(owner)
        await self._relay(payment, owner)
        return dict(ACK)

    def _resolve_owner(self, payment: dict, email: str | None) -> Profile | None:
        try:
            return resolve_owner(self.db, payment.get("external_reference"), email)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("payment_owner_lookup_failed", payment_id=str(payment["id"]), error=f"{type(e).__name__}: {e}")
            return None

    def _record_payment(self, payment: dict, owner: Profile | None) -> None:
        try:
            upsert_payment(
                self.db,
                payment_id=str(payment["id"]),
                email=_payer_email(payment, owner) or "",
                status=str(payment.get("status") or ""),
                amount=payment.get("transaction_amount") or 0,
                payment_method=_payment_method(payment),
                user_id=owner.id if owner else None,
            )
        except (SQLAlchemyError, RuntimeError, ArithmeticError, ValueError, TypeError) as e:
            self.db.rollback()
            warnings.warn(f"payment upsert failed: {e}", PersistenceWarning, stacklevel=2)
            logger.warning("payment_upsert_failed", payment_id=str(payment["id"]), error=f"{type(e).__name__}: {e}")
        else:
            logger.info("payment_upserted", payment_id=str(payment["id"]))

    def _grant_entitlement(self, owner: Profile) -> None:
        try:
            grant_premium(self.db, owner)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("premium_grant_failed", owner_id=str(owner.id), error=f"{type(e).__name__}: {e}")
        else:
            logger.info("premium_granted", owner_id=str(owner.id))

    async def _relay(self, payment: dict, owner: Profile) -> None:
        try:
            sub = active_subscription_for(self.db, owner.id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("subscription_lookup_failed", owner_id=str(owner.id), error=f"{type(e).__name__}: {e}")
            return

        if sub is None:
            logger.info("no_active_subscription", owner_id=str(owner.id))
            return

        result = await self.sender.deliver(
            sub.webhook_url,
            build_relay_payload(payment, owner),
            sub.user_id,
            source=DeliverySource.mercado_pago.value,
            payment_id=str(payment["id"]),
        )
        logger.info(
            "payment_relayed",
            payment_id=str(payment["id"]),
            success=result.success,
            status=result.status,
        )
