"""Business collaborator that receives classified notifications.

Order fulfillment lives outside this service; ``LoggingBusinessHandler`` is
the default used when nothing else is wired in.
"""

import logging
from typing import Protocol

from checkout_webhook.webhook.models import (
    MerchantOrderEvent,
    NotificationOutcome,
    PaymentEvent,
    Unrecognized,
)

logger = logging.getLogger(__name__)


class BusinessHandler(Protocol):
    async def handle(self, outcome: NotificationOutcome) -> None: ...


_PAYMENT_STATUS_MESSAGES = {
    "approved": "Payment %s approved, releasing access",
    "pending": "Payment %s pending, waiting for confirmation",
    "rejected": "Payment %s rejected",
    "cancelled": "Payment %s cancelled",
}


class LoggingBusinessHandler:
    async def handle(self, outcome: NotificationOutcome) -> None:
        if isinstance(outcome, PaymentEvent):
            self._handle_payment(outcome)
        elif isinstance(outcome, MerchantOrderEvent):
            logger.info(
                "Merchant order %s: status=%s items=%d",
                outcome.id,
                outcome.status,
                outcome.item_count,
            )
        elif isinstance(outcome, Unrecognized):
            logger.info("No business action for notification type %s", outcome.raw_topic)

    def _handle_payment(self, payment: PaymentEvent) -> None:
        logger.info(
            "Processing payment %s: status=%s external_reference=%s",
            payment.id,
            payment.status,
            payment.external_reference,
        )
        message = _PAYMENT_STATUS_MESSAGES.get(payment.status or "")
        if message:
            logger.info(message, payment.id)
        else:
            logger.warning("Payment %s has unknown status: %s", payment.id, payment.status)
