"""Static catalog for the premium content subscription."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict


class SubscriptionPlan(str, Enum):
    """Billing periods offered for the premium subscription."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class PricingPlan:
    """Base subscription prices in minor currency units (kobo)."""

    monthly: int = 45000
    first_time_monthly: int = 37000
    yearly: int = 432000
    currency: str = "NGN"
    yearly_discount_percent: int = 20


DEFAULT_PRICING = PricingPlan()


class ApplicablePricing(BaseModel):
    """Pricing as seen by a specific account, with first-time discount applied."""

    monthly: int
    regular_monthly: int
    first_time_monthly: int
    yearly: int
    currency: str
    yearly_discount_percent: int
    is_first_time_discount: bool
    discount_amount: int
    discount_percentage: int

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_plan(cls, plan: PricingPlan, *, eligible: bool) -> "ApplicablePricing":
        discount_amount = plan.monthly - plan.first_time_monthly if eligible else 0
        discount_percentage = 0
        if eligible and plan.monthly:
            discount_percentage = round(discount_amount / plan.monthly * 100)
        return cls(
            monthly=plan.first_time_monthly if eligible else plan.monthly,
            regular_monthly=plan.monthly,
            first_time_monthly=plan.first_time_monthly,
            yearly=plan.yearly,
            currency=plan.currency,
            yearly_discount_percent=plan.yearly_discount_percent,
            is_first_time_discount=eligible,
            discount_amount=discount_amount,
            discount_percentage=discount_percentage,
        )

    def amount_for(self, plan: SubscriptionPlan) -> int:
        return self.yearly if plan == SubscriptionPlan.YEARLY else self.monthly


class PlanPrice(BaseModel):
    """Display price for one billing period."""

    amount: int
    currency: str
    period: SubscriptionPlan
    monthly_equivalent: int
    savings: int
    discount_percentage: int

    model_config = ConfigDict(frozen=True)


def calculate_plan_price(pricing: ApplicablePricing, plan: SubscriptionPlan) -> PlanPrice:
    if plan == SubscriptionPlan.YEARLY:
        return PlanPrice(
            amount=pricing.yearly,
            currency=pricing.currency,
            period=plan,
            monthly_equivalent=round(pricing.yearly / 12),
            savings=pricing.monthly * 12 - pricing.yearly,
            discount_percentage=pricing.yearly_discount_percent,
        )
    return PlanPrice(
        amount=pricing.monthly,
        currency=pricing.currency,
        period=plan,
        monthly_equivalent=pricing.monthly,
        savings=pricing.discount_amount,
        discount_percentage=pricing.discount_percentage,
    )


_BASE_BENEFITS: Tuple[str, ...] = (
    "Live match streaming in HD",
    "Unlimited premium articles",
    "Personalized content feed",
    "Ad-free experience",
    "Exclusive analysis and insights",
    "Early access to breaking news",
)
_YEARLY_BENEFITS: Tuple[str, ...] = (
    "20% savings vs monthly",
    "Priority customer support",
)


def subscription_benefits(plan: SubscriptionPlan) -> List[str]:
    benefits = list(_BASE_BENEFITS)
    if plan == SubscriptionPlan.YEARLY:
        benefits.extend(_YEARLY_BENEFITS)
    return benefits


def format_price(amount: int) -> str:
    """Render an amount in kobo as a naira display string."""

    naira = amount / 100
    if naira == int(naira):
        return f"₦{int(naira):,}"
    return f"₦{naira:,.2f}"


def format_price_with_discount(original: int, discounted: int) -> dict:
    savings = original - discounted
    percentage = round(savings / original * 100) if original else 0
    return {
        "original": format_price(original),
        "discounted": format_price(discounted),
        "savings": format_price(savings),
        "percentage": f"{percentage}%",
    }


__all__ = [
    "ApplicablePricing",
    "DEFAULT_PRICING",
    "PlanPrice",
    "PricingPlan",
    "SubscriptionPlan",
    "calculate_plan_price",
    "format_price",
    "format_price_with_discount",
    "subscription_benefits",
]
