"""
Lifecycle notification emitter.

Notifications are a best-effort side effect of contract, workspace and
milestone transitions. Emitting happens after the primary transition has been
committed, and a failure here is logged and swallowed: it must never surface
as a request failure.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..models import Notification

logger = logging.getLogger(__name__)


class NotificationEmitter:
    """Interface: emit(party_id, event_kind, payload). Fire-and-forget."""

    def emit(self, party_id: int, event_kind: str, payload: dict) -> None:
        raise NotImplementedError


class DatabaseNotificationEmitter(NotificationEmitter):
    """Stores notifications for the in-app notification feed"""

    def __init__(self, db: Session):
        self.db = db

    def emit(self, party_id: int, event_kind: str, payload: dict) -> None:
        try:
            action_path: Optional[str] = payload.get("action_path")
            notification = Notification(
                user_id=party_id,
                user_role=payload.get("role"),
                type=event_kind,
                title=payload.get("title"),
                message=payload.get("message"),
                payload={k: v for k, v in payload.items() if k not in ("title", "message")},
                action_url=f"{FRONTEND_URL}{action_path}" if action_path else None,
            )
            self.db.add(notification)
            self.db.commit()
            logger.info(f"📨 Notification {event_kind} stored for user {party_id}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store {event_kind} notification for user {party_id}: {e}")


def notify_quietly(emitter: NotificationEmitter, party_id: int, event_kind: str, payload: dict) -> None:
    """Call any emitter without letting its failure escape"""
    try:
        emitter.emit(party_id, event_kind, payload)
    except Exception as e:
        logger.error(f"❌ Notification emitter failed for {event_kind} to user {party_id}: {e}")
