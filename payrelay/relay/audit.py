import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from payrelay.models.webhook_log import WebhookDeliveryLog

def append_delivery_log(
    db: Session,
    *,
    user_id: uuid.UUID,
    event_type: str,
    webhook_url: str,
    success: bool,
    status: int | None,
    body: str | None,
    source: str,
    payment_id: str | None = None,
) -> WebhookDeliveryLog:
    row = WebhookDeliveryLog(
        user_id=user_id,
        event_type=event_type,
        webhook_url=webhook_url,
        success=success,
        response_status=status,
        response_body=body,
        source=source,
        payment_id=payment_id,
    )
    db.add(row)
    db.commit()
    return row

def recent_delivery_logs(db: Session, user_id: uuid.UUID, limit: int = 10) -> list[WebhookDeliveryLog]:
    q = (
        select(WebhookDeliveryLog)
        .where(WebhookDeliveryLog.user_id == user_id)
        .order_by(WebhookDeliveryLog.created_at.desc(), WebhookDeliveryLog.id.desc())
        .limit(limit)
    )
    return list(db.scalars(q).all())
