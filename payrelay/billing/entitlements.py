import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payrelay.models.profile import Profile
from payrelay.models.webhook_subscription import WebhookSubscription

def resolve_owner(db: Session, external_reference: str | None, email: str | None) -> Profile | None:
    # explicit link set at checkout wins; payer email is the fallback
    if external_reference:
        try:
            profile_id = uuid.UUID(str(external_reference))
        except ValueError:
            profile_id = None
        if profile_id is not None:
            profile = db.get(Profile, profile_id)
            if profile is not None:
                return profile

    if email:
        return db.scalar(select(Profile).where(func.lower(Profile.email) == email.lower().strip()))
    return None

def grant_premium(db: Session, profile: Profile) -> None:
    if not profile.is_premium:
        profile.is_premium = True
        db.commit()

def active_subscription_for(db: Session, user_id: uuid.UUID) -> WebhookSubscription | None:
    sub = db.scalar(
        select(WebhookSubscription).where(
            WebhookSubscription.user_id == user_id,
            WebhookSubscription.is_active.is_(True),
        )
    )
    if sub is None or not (sub.webhook_url or "").strip():
        return None
    return sub
