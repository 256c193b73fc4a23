import uuid
from datetime import datetime

from pydantic import AnyHttpUrl, BaseModel

class ManualTestIn(BaseModel):
    webhook_url: AnyHttpUrl

class ManualTestOut(BaseModel):
    success: bool
    status: int
    message: str
    response: str

class SubscriptionIn(BaseModel):
    webhook_url: AnyHttpUrl
    is_active: bool = True

class SubscriptionOut(BaseModel):
    id: uuid.UUID
    webhook_url: str
    is_active: bool

class DeliveryLogOut(BaseModel):
    id: uuid.UUID
    event_type: str
    webhook_url: str
    success: bool
    response_status: int | None
    response_body: str | None
    source: str
    payment_id: str | None
    created_at: datetime
