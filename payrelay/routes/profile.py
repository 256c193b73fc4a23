from fastapi import APIRouter, Depends

from payrelay.auth.deps import get_current_profile
from payrelay.models.profile import Profile
from payrelay.schemas.profiles import ProfileOut

router = APIRouter(tags=["profile"])

@router.get("/me", response_model=ProfileOut)
def me(profile: Profile = Depends(get_current_profile)) -> ProfileOut:
    return ProfileOut(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        is_premium=profile.is_premium,
    )
