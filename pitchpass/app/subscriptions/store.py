"""Account-scoped subscription state with durable persistence."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from ..pricing import (
    DEFAULT_PRICING,
    ApplicablePricing,
    PlanPrice,
    PricingPlan,
    SubscriptionPlan,
    calculate_plan_price,
)
from .models import (
    ALLOWED_STATUS_TRANSITIONS,
    InvalidStatusTransition,
    SubscriptionRecord,
    SubscriptionStatus,
    SubscriptionSummary,
    SubscriptionUpdate,
    as_utc,
    tier_for_status,
)
from .storage import KeyValueStorage, subscription_storage_key

logger = logging.getLogger("subscriptions")

_SECONDS_PER_DAY = 24 * 60 * 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubscriptionStore:
    """Authoritative view of one account's subscription and discount eligibility.

    Every write persists the new record before it becomes visible, so a crash
    between the two leaves the previous record intact for the next
    ``initialize``. Two store instances for the same account must be
    serialized externally; the first purchase read-modify-write is not atomic
    across instances.
    """

    storage: KeyValueStorage
    account_id: str
    plan: PricingPlan = DEFAULT_PRICING
    namespace: str = "pitchpass"
    clock: Callable[[], datetime] = _utc_now
    expiring_soon_days: int = 7

    is_ready: bool = field(default=False, init=False)
    is_processing_payment: bool = field(default=False, init=False)
    payment_error: Optional[str] = field(default=None, init=False)
    _record: SubscriptionRecord = field(default_factory=SubscriptionRecord.clean, init=False, repr=False)

    @property
    def storage_key(self) -> str:
        return subscription_storage_key(self.namespace, self.account_id)

    @property
    def record(self) -> SubscriptionRecord:
        return self._record

    @property
    def status(self) -> SubscriptionStatus:
        return self._record.status

    @property
    def current_period_end(self) -> Optional[datetime]:
        return self._record.current_period_end

    @property
    def first_purchase_date(self) -> Optional[datetime]:
        return self._record.first_purchase_date

    def initialize(self) -> None:
        """Load the persisted record, discarding it when it is unreadable or stale."""

        try:
            raw = self.storage.get(self.storage_key)
        except Exception:
            logger.exception("Failed to load subscription for account %s", self.account_id)
            self.payment_error = "Failed to load subscription data"
            self.is_ready = True
            return

        if raw is None:
            self._record = SubscriptionRecord.clean()
            self.is_ready = True
            return

        record = self._parse(raw)
        if record is not None and self._is_valid(record):
            self._record = record
        else:
            self._discard(record)
        self.is_ready = True

    def set_subscription(self, update: SubscriptionUpdate) -> bool:
        current = self._record
        record = SubscriptionRecord(
            status=update.status,
            tier=tier_for_status(update.status),
            plan=update.plan,
            current_period_start=update.current_period_start,
            current_period_end=update.current_period_end,
            first_purchase_date=current.first_purchase_date or update.first_purchase_date,
            external_customer_ref=update.external_customer_ref,
            external_subscription_ref=update.external_subscription_ref,
            updated_at=self.clock(),
        )
        if not self._persist(record):
            self.payment_error = "Failed to save subscription data"
            return False

        self._record = record
        self.payment_error = None
        return True

    def clear_subscription(self) -> bool:
        first_purchase_date = self._record.first_purchase_date
        clean = SubscriptionRecord.clean(first_purchase_date=first_purchase_date)
        if first_purchase_date is not None:
            if not self._persist(clean):
                return False
        else:
            try:
                self.storage.delete(self.storage_key)
            except Exception:
                logger.exception("Failed to clear subscription for account %s", self.account_id)
                return False

        self._record = clean
        self.payment_error = None
        return True

    def update_subscription_status(
        self,
        status: SubscriptionStatus,
        period_end: Optional[datetime] = None,
    ) -> bool:
        """Apply an out-of-band status change such as a lifecycle notification.

        Returns ``False`` when the record could not be persisted. Raises
        ``InvalidStatusTransition`` when ``status`` is not reachable from the
        current status; nothing is written in that case.
        """

        current = self._record
        if status not in ALLOWED_STATUS_TRANSITIONS[current.status]:
            raise InvalidStatusTransition(current.status, status)

        record = current.model_copy(
            update={
                "status": status,
                "tier": tier_for_status(status),
                "current_period_end": as_utc(period_end) or current.current_period_end,
                "updated_at": self.clock(),
            }
        )
        if not self._persist(record):
            return False
        self._record = record
        return True

    def set_first_purchase_date(self, when: Optional[datetime] = None) -> bool:
        if self._record.first_purchase_date is not None:
            return True

        record = self._record.model_copy(
            update={"first_purchase_date": as_utc(when) or self.clock()}
        )
        if not self._persist(record):
            return False
        self._record = record
        return True

    def is_eligible_for_first_time_discount(self) -> bool:
        return self._record.first_purchase_date is None

    def get_applicable_pricing(self) -> ApplicablePricing:
        return ApplicablePricing.for_plan(
            self.plan, eligible=self.is_eligible_for_first_time_discount()
        )

    def calculate_price(self, plan: SubscriptionPlan = SubscriptionPlan.MONTHLY) -> PlanPrice:
        return calculate_plan_price(self.get_applicable_pricing(), plan)

    def is_premium(self) -> bool:
        period_end = self._record.current_period_end
        return (
            self._record.status == SubscriptionStatus.ACTIVE
            and period_end is not None
            and self.clock() <= period_end
        )

    def is_expiring_soon(self) -> bool:
        period_end = self._record.current_period_end
        if period_end is None or self._record.status != SubscriptionStatus.ACTIVE:
            return False
        if self.clock() > period_end:
            return False
        days = self._days_until(period_end)
        return 0 <= days <= self.expiring_soon_days

    def is_expired(self) -> bool:
        period_end = self._record.current_period_end
        if period_end is None:
            return self._record.status != SubscriptionStatus.ACTIVE
        return self.clock() > period_end

    def get_summary(self) -> SubscriptionSummary:
        record = self._record
        if record.status == SubscriptionStatus.PAST_DUE:
            return SubscriptionSummary(
                status=record.status.value,
                display_status="Payment Past Due",
                message="Please update your payment method to continue premium access",
                show_upgrade=True,
                is_expired=self.is_expired(),
                is_expiring_soon=False,
                next_billing_date=record.current_period_end,
                plan=record.plan,
            )

        if record.status != SubscriptionStatus.ACTIVE:
            return SubscriptionSummary(
                status=record.status.value,
                display_status="Free Plan",
                message="Upgrade to Premium for exclusive content and live streaming",
                show_upgrade=True,
                is_expired=False,
                is_expiring_soon=False,
            )

        expired = self.is_expired()
        expiring_soon = self.is_expiring_soon()
        display_status = "Premium Active"
        message = "Enjoying premium features"
        show_upgrade = False

        if expired:
            display_status = "Subscription Expired"
            message = "Your premium subscription has expired. Renew to continue enjoying premium features."
            show_upgrade = True
        elif expiring_soon and record.current_period_end is not None:
            days_left = self._days_until(record.current_period_end)
            plural = "" if days_left == 1 else "s"
            message = f"Your subscription expires in {days_left} day{plural}"

        return SubscriptionSummary(
            status=record.status.value,
            display_status=display_status,
            message=message,
            show_upgrade=show_upgrade,
            is_expired=expired,
            is_expiring_soon=expiring_soon,
            next_billing_date=record.current_period_end,
            plan=record.plan,
        )

    def set_payment_processing(self, is_processing: bool, error: Optional[str] = None) -> None:
        self.is_processing_payment = is_processing
        self.payment_error = error

    def clear_payment_error(self) -> None:
        self.payment_error = None

    def sync_subscription(self) -> bool:
        """Re-validate the in-memory record, clearing it once it has gone stale."""

        if self._is_valid(self._record):
            return True
        return self.clear_subscription()

    def _days_until(self, moment: datetime) -> int:
        return math.ceil((moment - self.clock()).total_seconds() / _SECONDS_PER_DAY)

    def _is_valid(self, record: SubscriptionRecord) -> bool:
        if record.status != SubscriptionStatus.ACTIVE:
            return True
        period_end = record.current_period_end
        return period_end is not None and self.clock() <= period_end

    def _parse(self, raw: str) -> Optional[SubscriptionRecord]:
        try:
            return SubscriptionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable subscription record for account %s", self.account_id)
            return None

    def _discard(self, record: Optional[SubscriptionRecord]) -> None:
        first_purchase_date = record.first_purchase_date if record else None
        logger.info("Replacing stale subscription record for account %s", self.account_id)
        self._record = SubscriptionRecord.clean(first_purchase_date=first_purchase_date)
        if first_purchase_date is not None:
            self._persist(self._record)
            return
        try:
            self.storage.delete(self.storage_key)
        except Exception:
            logger.exception("Failed to remove stale subscription for account %s", self.account_id)

    def _persist(self, record: SubscriptionRecord) -> bool:
        try:
            self.storage.set(self.storage_key, record.model_dump_json())
        except Exception:
            logger.exception("Failed to persist subscription for account %s", self.account_id)
            return False
        return True


__all__ = ["SubscriptionStore"]
