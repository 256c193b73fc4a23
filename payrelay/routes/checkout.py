import structlog
from fastapi import APIRouter, Depends

from payrelay.auth.deps import get_current_profile
from payrelay.billing.deps import get_processor
from payrelay.billing.processor import PaymentProcessorClient
from payrelay.config import settings
from payrelay.models.profile import Profile
from payrelay.schemas.profiles import CheckoutOut

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

@router.post("", response_model=CheckoutOut)
async def create_checkout(
    profile: Profile = Depends(get_current_profile),
    processor: PaymentProcessorClient = Depends(get_processor),
) -> CheckoutOut:
    preference = await processor.create_preference(
        owner_id=profile.id,
        payer_email=profile.email,
        title=settings.premium_title,
        unit_price=settings.premium_price,
        currency=settings.premium_currency,
    )
    logger.info("checkout_created", owner_id=str(profile.id), preference_id=preference.get("id"))
    return CheckoutOut(
        preference_id=str(preference["id"]) if preference.get("id") is not None else None,
        init_point=preference.get("init_point"),
    )
