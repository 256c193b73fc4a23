import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from payrelay.models.base import Base

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

class WebhookDeliveryLog(Base):
    __tablename__ = "webhook_logs"
    __table_args__ = (sa.Index("ix_webhook_logs_user_id_created_at", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("profiles.id"), nullable=False
    )

    event_type: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    webhook_url: Mapped[str] = mapped_column(sa.String(2048), nullable=False)
    success: Mapped[bool] = mapped_column(sa.Boolean, nullable=False)

    # 0 on transport failure
    response_status: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    source: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    payment_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_now_utc, server_default=sa.func.now(), nullable=False
    )

# append-only: rows are never updated or deleted by the service
