"""Pricing for pitch bookings and the premium subscription."""

from .catalog import (
    DEFAULT_PRICING,
    ApplicablePricing,
    PlanPrice,
    PricingPlan,
    SubscriptionPlan,
    calculate_plan_price,
    format_price,
    format_price_with_discount,
    subscription_benefits,
)
from .engine import (
    DURATION_MULTIPLIERS,
    SERVICE_FEE,
    PriceQuote,
    compute_quote,
    duration_multiplier,
)

__all__ = [
    "ApplicablePricing",
    "DEFAULT_PRICING",
    "DURATION_MULTIPLIERS",
    "PlanPrice",
    "PriceQuote",
    "PricingPlan",
    "SERVICE_FEE",
    "SubscriptionPlan",
    "calculate_plan_price",
    "compute_quote",
    "duration_multiplier",
    "format_price",
    "format_price_with_discount",
    "subscription_benefits",
]
