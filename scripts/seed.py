import os
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from payrelay.auth.tokens import issue_access_token
from payrelay.db import SessionLocal
from payrelay.models.profile import Profile
from payrelay.models.webhook_subscription import WebhookSubscription

@dataclass
class SeedResult:
    email: str
    profile_id: uuid.UUID
    webhook_url: str
    access_token: str

def get_or_create_profile(db: Session, email: str, full_name: str | None = None) -> Profile:
    email = email.lower().strip()
    p = db.scalar(select(Profile).where(Profile.email == email))
    if p is None:
        p = Profile(email=email, full_name=full_name)
        db.add(p)
        db.flush()
    return p

def get_or_create_subscription(db: Session, user_id: uuid.UUID, webhook_url: str) -> WebhookSubscription:
    s = db.scalar(select(WebhookSubscription).where(WebhookSubscription.user_id == user_id))
    if s is None:
        s = WebhookSubscription(user_id=user_id, webhook_url=webhook_url, is_active=True)
        db.add(s)
        db.flush()
    elif s.webhook_url != webhook_url or not s.is_active:
        # keep it stable if you re-run seed
        s.webhook_url = webhook_url
        s.is_active = True
        db.flush()
    return s

def seed() -> SeedResult:
    email = os.getenv("SEED_EMAIL", "owner@example.com")
    webhook_url = os.getenv("SEED_WEBHOOK_URL", "https://httpbin.org/post")

    db = SessionLocal()
    try:
        profile = get_or_create_profile(db, email, "seeded owner")
        sub = get_or_create_subscription(db, profile.id, webhook_url)
        db.commit()

        return SeedResult(
            email=profile.email,
            profile_id=profile.id,
            webhook_url=sub.webhook_url,
            access_token=issue_access_token(profile.id),
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"profile_id={r.profile_id}")
    print(f"email={r.email}")
    print(f"webhook_url={r.webhook_url}")
    print(f"access_token={r.access_token}")
