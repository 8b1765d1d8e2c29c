"""API routes for the premium subscription checkout and lifecycle."""
from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from ... import app_context
from ..payments import (
    AccountContext,
    AuthRequiredError,
    CancellationAck,
    ConcurrentAttemptError,
    PaymentCancelledError,
    PaymentFailedError,
    PaymentResult,
    ProcessorError,
)
from ..pricing import ApplicablePricing
from ..schemas.subscriptions import (
    CancelCheckoutResponse,
    CancelSubscriptionRequest,
    CheckoutRequest,
    ReactivateSubscriptionResponse,
    SubscriptionEventPayload,
)
from ..services import subscriptions as subscriptions_service
from ..subscriptions import InvalidStatusTransition, SubscriptionSummary

logger = logging.getLogger("payments")

_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
) -> AccountContext:
    return app_context.get_current_user(session_token=session_token)


router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("/summary", response_model=SubscriptionSummary)
def get_subscription_summary(
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> SubscriptionSummary:
    store = subscriptions_service.get_subscription_store(current_user.account_id)
    store.sync_subscription()
    return store.get_summary()


@router.get("/pricing", response_model=ApplicablePricing)
def get_subscription_pricing(
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> ApplicablePricing:
    store = subscriptions_service.get_subscription_store(current_user.account_id)
    return store.get_applicable_pricing()


@router.post("/checkout", response_model=PaymentResult)
async def checkout(
    payload: CheckoutRequest,
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> PaymentResult:
    orchestrator = subscriptions_service.get_payment_orchestrator(current_user.account_id)
    observer = subscriptions_service.LoggingPaymentObserver(current_user.account_id)
    try:
        result = await orchestrator.initiate_subscription_payment(
            payload.plan,
            account=current_user,
            on_progress=observer.on_progress,
            on_success=observer.on_success,
            on_error=observer.on_error,
        )
    except AuthRequiredError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except (ConcurrentAttemptError, PaymentCancelledError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PaymentFailedError as exc:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=exc.payload) from exc

    if not result.subscription_saved:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "Payment succeeded but the subscription could not be saved",
                "payment_ref": result.payment.payment_ref,
                "subscription_ref": result.subscription.subscription_ref,
            },
        )
    return result


@router.post("/checkout/cancel", response_model=CancelCheckoutResponse)
async def cancel_checkout(
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> CancelCheckoutResponse:
    orchestrator = subscriptions_service.get_payment_orchestrator(current_user.account_id)
    cancelled = await orchestrator.cancel_payment()
    return CancelCheckoutResponse(cancelled=cancelled)


@router.post("/cancel", response_model=CancellationAck)
async def cancel_subscription(
    payload: CancelSubscriptionRequest,
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> CancellationAck:
    service = subscriptions_service.get_lifecycle_service(current_user.account_id)
    try:
        return await service.cancel_subscription(payload.reason)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ProcessorError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/reactivate", response_model=ReactivateSubscriptionResponse)
async def reactivate_subscription(
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> ReactivateSubscriptionResponse:
    service = subscriptions_service.get_lifecycle_service(current_user.account_id)
    try:
        reactivated = await service.reactivate_subscription()
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ProcessorError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ReactivateSubscriptionResponse(reactivated=reactivated)


@router.post("/events", status_code=status.HTTP_204_NO_CONTENT)
def receive_subscription_event(payload: SubscriptionEventPayload) -> Response:
    service = subscriptions_service.get_lifecycle_service(payload.account_id)
    try:
        applied = service.apply_status_event(payload)
    except InvalidStatusTransition as exc:
        logger.warning(
            "Subscription event %s rejected for account %s: %s",
            payload.event_type,
            payload.account_id,
            exc,
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not applied:
        logger.info("Subscription event %s not applied for account %s", payload.event_type, payload.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = [
    "router",
    "cancel_checkout",
    "cancel_subscription",
    "checkout",
    "get_subscription_pricing",
    "get_subscription_summary",
    "reactivate_subscription",
    "receive_subscription_event",
]
