import uuid

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from payrelay.auth.tokens import decode_access_token
from payrelay.db import get_db
from payrelay.models.profile import Profile

bearer = HTTPBearer(auto_error=False)

def get_current_profile(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Profile:
    if creds is None or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="missing bearer token")

    try:
        payload = decode_access_token(creds.credentials)
        profile_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="invalid token")

    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=401, detail="user not found")

    return profile
