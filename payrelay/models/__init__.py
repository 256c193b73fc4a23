from payrelay.models.payment import PaymentRecord
from payrelay.models.profile import Profile
from payrelay.models.webhook_log import WebhookDeliveryLog
from payrelay.models.webhook_subscription import WebhookSubscription

__all__ = ["Profile", "PaymentRecord", "WebhookSubscription", "WebhookDeliveryLog"]
