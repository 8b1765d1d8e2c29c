"""Domain models for the premium subscription lifecycle."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..pricing import SubscriptionPlan


class SubscriptionStatus(str, Enum):
    """Lifecycle status reported for an account's subscription."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"


class AccessTier(str, Enum):
    """Content access level derived from the subscription status."""

    FREE = "free"
    PREMIUM = "premium"


# Canceled and unpaid only leave through a fresh ``set_subscription``.
ALLOWED_STATUS_TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    SubscriptionStatus.INACTIVE: frozenset({SubscriptionStatus.INACTIVE, SubscriptionStatus.ACTIVE}),
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.PAST_DUE: frozenset(
        {
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.CANCELED,
            SubscriptionStatus.UNPAID,
        }
    ),
    SubscriptionStatus.CANCELED: frozenset({SubscriptionStatus.CANCELED}),
    SubscriptionStatus.UNPAID: frozenset({SubscriptionStatus.UNPAID}),
}


class InvalidStatusTransition(ValueError):
    """Raised when a status update would skip the subscription state machine."""

    def __init__(self, current: SubscriptionStatus, requested: SubscriptionStatus) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move subscription from {current.value} to {requested.value}")


def tier_for_status(status: SubscriptionStatus) -> AccessTier:
    return AccessTier.PREMIUM if status == SubscriptionStatus.ACTIVE else AccessTier.FREE


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SubscriptionRecord(BaseModel):
    """Persisted subscription state for a single account."""

    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    tier: AccessTier = AccessTier.FREE
    plan: Optional[SubscriptionPlan] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    first_purchase_date: Optional[datetime] = None
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @field_validator(
        "current_period_start",
        "current_period_end",
        "first_purchase_date",
        "updated_at",
    )
    @classmethod
    def _utc_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @classmethod
    def clean(cls, *, first_purchase_date: Optional[datetime] = None) -> "SubscriptionRecord":
        """Default free/inactive record, optionally keeping a recorded first purchase."""

        return cls(first_purchase_date=first_purchase_date)


class SubscriptionUpdate(BaseModel):
    """Full replacement payload accepted by ``SubscriptionStore.set_subscription``."""

    status: SubscriptionStatus
    plan: Optional[SubscriptionPlan] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    first_purchase_date: Optional[datetime] = Field(
        default=None,
        description="Applied only when the account has no recorded first purchase",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("current_period_start", "current_period_end", "first_purchase_date")
    @classmethod
    def _utc_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class SubscriptionSummary(BaseModel):
    """Presentation projection of the subscription state."""

    status: str
    display_status: str
    message: str
    show_upgrade: bool
    is_expired: bool
    is_expiring_soon: bool
    next_billing_date: Optional[datetime] = None
    plan: Optional[SubscriptionPlan] = None

    model_config = ConfigDict(frozen=True)


__all__ = [
    "ALLOWED_STATUS_TRANSITIONS",
    "AccessTier",
    "InvalidStatusTransition",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "SubscriptionSummary",
    "SubscriptionUpdate",
    "as_utc",
    "tier_for_status",
]
