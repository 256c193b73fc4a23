from enum import Enum

class DeliverySource(str, Enum):
    mercado_pago = "mercado_pago"
    manual_test = "manual_test"

class PaymentStatus(str, Enum):
    approved = "approved"
    pending = "pending"
    rejected = "rejected"
    test = "test"

class EventType(str, Enum):
    payment = "payment"
    payment_success = "payment_success"
    test = "test"
