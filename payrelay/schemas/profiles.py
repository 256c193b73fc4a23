import uuid
from pydantic import BaseModel

class ProfileOut(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str | None
    is_premium: bool

class CheckoutOut(BaseModel):
    preference_id: str | None
    init_point: str | None
