"""Routes verified notifications to payment, merchant order or unknown slots.

Payment and merchant order notifications only carry an id, so the full
resource is fetched from the provider before the outcome is built. A failed
fetch is logged and absorbed: the provider retries delivery on any non-2xx
response, and a transient error on its query API says nothing about whether
the notification itself was valid.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from checkout_webhook.provider.client import ProviderLookup, ProviderLookupError
from checkout_webhook.webhook.models import (
    MerchantOrderEvent,
    Notification,
    NotificationOutcome,
    PaymentEvent,
    Unrecognized,
)

logger = logging.getLogger(__name__)

PAYMENT_TOPIC = "payment"
MERCHANT_ORDER_TOPIC = "merchant_order"


class DispatchStatus(str, Enum):
    DISPATCHED = "dispatched"
    IGNORED_UNCLASSIFIED = "ignored_unclassified"
    FETCH_FAILED = "fetch_failed"
    NO_RESOURCE_ID = "no_resource_id"


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    outcome: NotificationOutcome | None = None


class NotificationDispatcher:
    def __init__(self, lookup: ProviderLookup) -> None:
        self._lookup = lookup

    async def dispatch(self, notification: Notification) -> DispatchResult:
        key = notification.classification_key
        if key == PAYMENT_TOPIC:
            return await self._dispatch_payment(notification)
        if key == MERCHANT_ORDER_TOPIC:
            return await self._dispatch_merchant_order(notification)

        logger.info("Unrecognized notification type: %s", key)
        return DispatchResult(DispatchStatus.IGNORED_UNCLASSIFIED, Unrecognized(raw_topic=key))

    async def _dispatch_payment(self, notification: Notification) -> DispatchResult:
        payment_id = notification.data_id
        if payment_id is None:
            logger.info("Payment notification %s has no data.id, skipping", notification.id)
            return DispatchResult(DispatchStatus.NO_RESOURCE_ID)

        try:
            payment = await self._lookup.get_payment(payment_id)
        except ProviderLookupError:
            logger.warning("Could not fetch payment %s", payment_id, exc_info=True)
            return DispatchResult(DispatchStatus.FETCH_FAILED)

        logger.info("Payment notification received: %s (status=%s)", payment_id, payment.status)
        return DispatchResult(
            DispatchStatus.DISPATCHED,
            PaymentEvent(
                id=str(payment.id),
                status=payment.status,
                status_detail=payment.status_detail,
                transaction_amount=payment.transaction_amount,
                external_reference=payment.external_reference,
            ),
        )

    async def _dispatch_merchant_order(self, notification: Notification) -> DispatchResult:
        order_id = notification.data_id
        if order_id is None:
            logger.info("Merchant order notification %s has no data.id, skipping", notification.id)
            return DispatchResult(DispatchStatus.NO_RESOURCE_ID)

        try:
            order = await self._lookup.get_merchant_order(order_id)
        except ProviderLookupError:
            logger.warning("Could not fetch merchant order %s", order_id, exc_info=True)
            return DispatchResult(DispatchStatus.FETCH_FAILED)

        logger.info("Merchant order notification received: %s (status=%s)", order_id, order.status)
        return DispatchResult(
            DispatchStatus.DISPATCHED,
            MerchantOrderEvent(id=str(order.id), status=order.status, item_count=order.item_count),
        )
