"""Pitch booking quote computation."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

SERVICE_FEE = 2500
FIRST_BOOKING_DISCOUNT_RATE = Decimal("0.10")

# Durations missing from the table are charged as a single hour.
DURATION_MULTIPLIERS: Dict[int, Decimal] = {
    1: Decimal("1.0"),
    2: Decimal("1.8"),
    3: Decimal("2.5"),
}
_FALLBACK_MULTIPLIER = Decimal("1.0")


class PriceQuote(BaseModel):
    """Price breakdown for a single pitch booking, in minor currency units."""

    base_price_per_hour: int = Field(ge=0)
    duration_hours: int
    subtotal: int = Field(ge=0)
    service_fee: int = Field(ge=0)
    first_booking_discount: int = Field(ge=0)
    duration_discount: int
    total: int = Field(ge=0)
    is_first_booking: bool

    model_config = ConfigDict(frozen=True)

    @property
    def discount(self) -> int:
        return self.first_booking_discount + self.duration_discount

    @property
    def total_savings(self) -> int:
        """Combined first-booking and duration savings shown on receipts."""
        return self.discount


def _to_minor_units(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def duration_multiplier(duration_hours: int) -> Decimal:
    if duration_hours < 1:
        return Decimal("0")
    return DURATION_MULTIPLIERS.get(duration_hours, _FALLBACK_MULTIPLIER)


def compute_quote(base_price_per_hour: int, duration_hours: int, is_first_booking: bool) -> PriceQuote:
    """Return the quote for booking a pitch for ``duration_hours`` hours.

    The computation is pure: the same inputs always produce an equal quote.
    A zero-hour booking prices nothing but the service fee.
    """

    if base_price_per_hour < 0:
        raise ValueError("base_price_per_hour must be >= 0")

    base = Decimal(base_price_per_hour)
    subtotal = _to_minor_units(base * duration_multiplier(duration_hours))

    duration_discount = 0
    if duration_hours > 1:
        duration_discount = base_price_per_hour * duration_hours - subtotal

    first_booking_discount = 0
    if is_first_booking:
        first_booking_discount = _to_minor_units(Decimal(subtotal) * FIRST_BOOKING_DISCOUNT_RATE)

    total = subtotal - first_booking_discount + SERVICE_FEE

    return PriceQuote(
        base_price_per_hour=base_price_per_hour,
        duration_hours=duration_hours,
        subtotal=subtotal,
        service_fee=SERVICE_FEE,
        first_booking_discount=first_booking_discount,
        duration_discount=duration_discount,
        total=total,
        is_first_booking=is_first_booking,
    )


__all__ = [
    "DURATION_MULTIPLIERS",
    "FIRST_BOOKING_DISCOUNT_RATE",
    "PriceQuote",
    "SERVICE_FEE",
    "compute_quote",
    "duration_multiplier",
]
