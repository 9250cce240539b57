"""Best-effort real-time push to connected party sessions"""

import logging
from typing import Optional

import httpx

from ..config import OUTBOUND_TIMEOUT_SECONDS, REALTIME_PUSH_URL

logger = logging.getLogger(__name__)


class RealtimeChannel:
    """Interface: publish(party_id, event). UI refresh signal only."""

    def publish(self, party_id: int, event: dict) -> None:
        raise NotImplementedError


class HttpRealtimeChannel(RealtimeChannel):
    """Forwards events to the socket gateway, which fans them out per user room"""

    def __init__(self, push_url: Optional[str] = REALTIME_PUSH_URL, timeout: float = OUTBOUND_TIMEOUT_SECONDS):
        self.push_url = push_url
        self.timeout = timeout

    def publish(self, party_id: int, event: dict) -> None:
        if not self.push_url:
            logger.debug(f"ℹ️ Realtime push disabled, dropping {event.get('type')} for user {party_id}")
            return

        try:
            response = httpx.post(
                self.push_url,
                json={"room": str(party_id), "event": event},
                timeout=self.timeout,
            )
            if response.status_code >= 400:
                logger.warning(
                    f"⚠️ Realtime push for user {party_id} rejected: HTTP {response.status_code}"
                )
        except Exception as e:
            logger.warning(f"⚠️ Realtime push failed for user {party_id}: {e}")


def publish_quietly(channel: RealtimeChannel, party_id: int, event: dict) -> None:
    try:
        channel.publish(party_id, event)
    except Exception as e:
        logger.warning(f"⚠️ Realtime channel error for user {party_id}: {e}")
