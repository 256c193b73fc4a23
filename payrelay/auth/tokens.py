import uuid
import jwt
from datetime import datetime, timedelta, timezone
from payrelay.config import settings

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def issue_access_token(profile_id: str | uuid.UUID) -> str:
    profile_id = str(profile_id)
    iat = now_utc()
    exp = iat + timedelta(minutes=settings.jwt_expires_minutes)
    payload = {
        "sub": profile_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")

def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
