"""API routes for pitch booking quotes."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ..pricing import PriceQuote, compute_quote
from ..schemas.subscriptions import QuoteRequest

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


@router.post("/quote", response_model=PriceQuote)
def quote_booking(payload: QuoteRequest) -> PriceQuote:
    """Return the price breakdown for booking a pitch."""
    try:
        return compute_quote(
            payload.base_price_per_hour,
            payload.duration_hours,
            payload.is_first_booking,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


__all__ = ["router", "quote_booking"]
