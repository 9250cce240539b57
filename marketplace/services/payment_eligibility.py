"""
Payment eligibility signal.

When a milestone is approved it becomes eligible for payment release. The
milestone's own payment_ready_at column is the durable record; this signal
only tells the downstream payment flow to pick it up. No money moves here.
"""

import logging
from typing import Optional

import httpx

from ..config import OUTBOUND_TIMEOUT_SECONDS, PAYMENTS_WEBHOOK_URL

logger = logging.getLogger(__name__)


class PaymentEligibility:
    """Interface: mark_ready(milestone_id)"""

    def mark_ready(self, milestone_id: str) -> None:
        raise NotImplementedError


class WebhookPaymentEligibility(PaymentEligibility):
    def __init__(
        self,
        webhook_url: Optional[str] = PAYMENTS_WEBHOOK_URL,
        timeout: float = OUTBOUND_TIMEOUT_SECONDS,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def mark_ready(self, milestone_id: str) -> None:
        if not self.webhook_url:
            logger.info(f"💰 Milestone {milestone_id} ready for payment release")
            return

        try:
            response = httpx.post(
                self.webhook_url,
                json={"event": "milestone.payment_ready", "milestone_id": milestone_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(f"💰 Payment flow notified for milestone {milestone_id}")
        except Exception as e:
            # The reconciliation side of the payment flow polls payment_ready_at
            logger.error(f"❌ Failed to signal payment readiness for {milestone_id}: {e}")
