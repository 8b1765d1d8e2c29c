"""Post-purchase subscription lifecycle: cancellation, reactivation, status events."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..subscriptions import (
    ALLOWED_STATUS_TRANSITIONS,
    InvalidStatusTransition,
    SubscriptionStatus,
    SubscriptionStore,
    SubscriptionUpdate,
)
from .models import CancellationAck
from .processor import PaymentProcessorClient

logger = logging.getLogger("payments.lifecycle")


class SubscriptionEventType(str, Enum):
    """Processor notifications that change the subscription status."""

    PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    PAYMENT_FAILED = "invoice.payment_failed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


_EVENT_STATUS: Dict[SubscriptionEventType, SubscriptionStatus] = {
    SubscriptionEventType.PAYMENT_SUCCEEDED: SubscriptionStatus.ACTIVE,
    SubscriptionEventType.PAYMENT_FAILED: SubscriptionStatus.PAST_DUE,
    SubscriptionEventType.SUBSCRIPTION_DELETED: SubscriptionStatus.CANCELED,
}


class SubscriptionStatusEvent(BaseModel):
    """Normalized lifecycle notification from the processor."""

    event_type: str = Field(alias="type")
    subscription_ref: Optional[str] = Field(default=None, alias="subscriptionRef")
    status: Optional[SubscriptionStatus] = None
    current_period_end: Optional[datetime] = Field(default=None, alias="currentPeriodEnd")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


@dataclass
class SubscriptionLifecycleService:
    """Keeps the subscription store in step with processor-side lifecycle changes."""

    store: SubscriptionStore
    processor: PaymentProcessorClient

    def _subscription_ref(self) -> str:
        ref = self.store.record.external_subscription_ref
        if not ref:
            raise LookupError("No subscription on record for this account")
        return ref

    async def cancel_subscription(self, reason: str = "user_request") -> CancellationAck:
        subscription_ref = self._subscription_ref()
        current = self.store.status
        if SubscriptionStatus.CANCELED not in ALLOWED_STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransition(current, SubscriptionStatus.CANCELED)

        ack = await self.processor.cancel_subscription(subscription_ref, reason)
        if not self.store.update_subscription_status(SubscriptionStatus.CANCELED):
            raise RuntimeError("Failed to record subscription cancellation")
        logger.info("Subscription %s canceled reason=%s", ack.subscription_ref, reason)
        return ack

    async def reactivate_subscription(self) -> bool:
        record = self.store.record
        subscription = await self.processor.reactivate_subscription(self._subscription_ref())
        saved = self.store.set_subscription(
            SubscriptionUpdate(
                status=subscription.status,
                plan=record.plan,
                current_period_start=subscription.current_period_start,
                current_period_end=subscription.current_period_end,
                external_customer_ref=subscription.customer_ref or record.external_customer_ref,
                external_subscription_ref=subscription.subscription_ref,
            )
        )
        if saved:
            logger.info("Subscription %s reactivated", subscription.subscription_ref)
        return saved

    def apply_status_event(self, event: SubscriptionStatusEvent) -> bool:
        """Apply a processor notification; returns ``False`` when it is not applied.

        Only events naming the subscription the account already holds are
        applied. Raises ``InvalidStatusTransition`` when the mapped status is
        not reachable from the current one.
        """

        try:
            event_type = SubscriptionEventType(event.event_type)
        except ValueError:
            logger.info("Unhandled subscription event %s", event.event_type)
            return False

        current_ref = self.store.record.external_subscription_ref
        if not current_ref:
            logger.warning(
                "Ignoring %s for subscription %s; account has no subscription on record",
                event_type.value,
                event.subscription_ref,
            )
            return False
        if event.subscription_ref != current_ref:
            logger.warning(
                "Ignoring %s for subscription %s; account holds %s",
                event_type.value,
                event.subscription_ref,
                current_ref,
            )
            return False

        if event_type == SubscriptionEventType.SUBSCRIPTION_UPDATED:
            if event.status is None:
                raise ValueError("status missing from subscription update event")
            status = event.status
        else:
            status = _EVENT_STATUS[event_type]

        return self.store.update_subscription_status(status, event.current_period_end)


__all__ = [
    "SubscriptionEventType",
    "SubscriptionLifecycleService",
    "SubscriptionStatusEvent",
]
