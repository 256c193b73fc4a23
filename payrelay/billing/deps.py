from fastapi import Depends
from sqlalchemy.orm import Session

from payrelay.billing.processor import PaymentProcessorClient
from payrelay.billing.reconciler import PaymentReconciler
from payrelay.config import settings
from payrelay.db import get_db
from payrelay.relay.sender import RelaySender

def get_processor() -> PaymentProcessorClient:
    return PaymentProcessorClient.from_settings(settings)

def get_relay_sender(db: Session = Depends(get_db)) -> RelaySender:
    return RelaySender.from_settings(db, settings)

def get_reconciler(
    db: Session = Depends(get_db),
    processor: PaymentProcessorClient = Depends(get_processor),
    sender: RelaySender = Depends(get_relay_sender),
) -> PaymentReconciler:
    return PaymentReconciler(db, processor, sender)
