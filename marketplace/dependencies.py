"""Providers for the side-effect collaborators, overridable in tests"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .services.notification_service import DatabaseNotificationEmitter, NotificationEmitter
from .services.payment_eligibility import PaymentEligibility, WebhookPaymentEligibility
from .services.realtime import HttpRealtimeChannel, RealtimeChannel


def get_notification_emitter(db: Session = Depends(get_db)) -> NotificationEmitter:
    return DatabaseNotificationEmitter(db)


def get_realtime_channel() -> RealtimeChannel:
    return HttpRealtimeChannel()


def get_payment_eligibility() -> PaymentEligibility:
    return WebhookPaymentEligibility()
