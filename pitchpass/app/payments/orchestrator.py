"""Drives a subscription purchase through the payment processor."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple, Union

from ..pricing import SubscriptionPlan
from ..subscriptions import SubscriptionStatus, SubscriptionStore, SubscriptionUpdate
from .errors import (
    AuthRequiredError,
    ClassifiedPaymentError,
    ConcurrentAttemptError,
    PaymentCancelledError,
    PaymentFailedError,
    ProcessorError,
    describe_payment_error,
)
from .models import (
    AccountContext,
    ChargeResult,
    PaymentAttempt,
    PaymentIntent,
    PaymentMethod,
    PaymentPhase,
    PaymentProgress,
    PaymentResult,
    PaymentStatus,
    ProgressStep,
)
from .processor import PaymentProcessorClient

logger = logging.getLogger("payments")

ProgressCallback = Callable[[PaymentProgress], None]
SuccessCallback = Callable[[PaymentResult], None]
ErrorCallback = Callable[[ClassifiedPaymentError], None]
SleepFunction = Callable[[float], Awaitable[None]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ignore(_: object) -> None:
    return None


@dataclass
class PaymentFlowOrchestrator:
    """Runs at most one subscription purchase attempt at a time.

    Retryable processor failures are retried up to ``max_retries`` times with
    exponential backoff. Cancellation is cooperative: a processor call already
    in flight finishes, but its outcome is discarded.
    """

    store: SubscriptionStore
    processor: PaymentProcessorClient
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    sleep: SleepFunction = asyncio.sleep
    clock: Callable[[], datetime] = _utc_now
    payment_method: PaymentMethod = field(default_factory=PaymentMethod)

    _attempt: Optional[PaymentAttempt] = field(default=None, init=False, repr=False)

    @property
    def phase(self) -> PaymentPhase:
        return self._attempt.phase if self._attempt else PaymentPhase.IDLE

    @property
    def retry_count(self) -> int:
        return self._attempt.retry_count if self._attempt else 0

    @property
    def is_active(self) -> bool:
        return self._attempt is not None

    def backoff_delay(self, retry_count: int) -> float:
        return self.backoff_base_seconds * (2 ** retry_count)

    async def initiate_subscription_payment(
        self,
        plan: Union[SubscriptionPlan, str],
        *,
        account: Optional[AccountContext],
        on_progress: Optional[ProgressCallback] = None,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> PaymentResult:
        """Purchase ``plan`` for ``account``.

        Returns the :class:`PaymentResult` on success. Raises
        :class:`PaymentFailedError` after ``on_error`` when the payment fails
        for good, and :class:`PaymentCancelledError` when ``cancel_payment``
        ended the attempt first.
        """

        if account is None:
            raise AuthRequiredError("User must be authenticated to purchase subscription")
        if self._attempt is not None:
            raise ConcurrentAttemptError("A subscription payment is already in progress")

        plan = SubscriptionPlan(plan)
        attempt = PaymentAttempt(
            plan=plan,
            is_first_time=self.store.is_eligible_for_first_time_discount(),
            started_at=self.clock(),
        )
        self._attempt = attempt
        try:
            return await self._drive(
                attempt,
                account,
                on_progress or _ignore,
                on_success or _ignore,
                on_error or _ignore,
            )
        finally:
            if self._attempt is attempt:
                self._attempt = None
                self.store.set_payment_processing(False, self.store.payment_error)

    async def _drive(
        self,
        attempt: PaymentAttempt,
        account: AccountContext,
        on_progress: ProgressCallback,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> PaymentResult:
        self.store.set_payment_processing(True)
        on_progress(PaymentProgress.for_step(ProgressStep.INITIALIZING))

        pricing = self.store.get_applicable_pricing()
        amount = pricing.amount_for(attempt.plan)

        while True:
            try:
                intent, charge = await self._run_once(attempt, account, amount, pricing.currency, on_progress)
                break
            except PaymentCancelledError:
                raise
            except Exception as exc:
                self._ensure_current(attempt)
                classified = describe_payment_error(
                    exc,
                    retry_count=attempt.retry_count,
                    max_retries=self.max_retries,
                )
                if not classified.can_retry:
                    self._fail(attempt, classified, on_error)
                    raise PaymentFailedError(classified) from exc

                delay = self.backoff_delay(attempt.retry_count)
                attempt.phase = PaymentPhase.RETRYING
                logger.warning(
                    "Retrying payment plan=%s attempt=%s/%s after %.1fs: %s",
                    attempt.plan.value,
                    attempt.retry_count + 1,
                    self.max_retries,
                    delay,
                    classified.category.value,
                )
                await self.sleep(delay)
                self._ensure_current(attempt)
                attempt.retry_count += 1

        return self._succeed(attempt, intent, charge, on_progress, on_success)

    async def _run_once(
        self,
        attempt: PaymentAttempt,
        account: AccountContext,
        amount: int,
        currency: str,
        on_progress: ProgressCallback,
    ) -> Tuple[PaymentIntent, ChargeResult]:
        attempt.phase = PaymentPhase.CREATING_INTENT
        on_progress(PaymentProgress.for_step(ProgressStep.CREATING_INTENT))
        intent = await self.processor.create_subscription_intent(
            plan=attempt.plan,
            account=account,
            is_first_time=attempt.is_first_time,
            amount=amount,
            currency=currency,
        )
        self._ensure_current(attempt)
        attempt.intent_ref = intent.intent_ref

        attempt.phase = PaymentPhase.PAYMENT_READY
        on_progress(PaymentProgress.for_step(ProgressStep.PAYMENT_READY))
        confirmation = await self.processor.collect_and_confirm(intent)
        self._ensure_current(attempt)
        if not confirmation.success:
            raise ProcessorError(confirmation.error or "Payment failed")

        attempt.phase = PaymentPhase.PROCESSING
        on_progress(PaymentProgress.for_step(ProgressStep.PROCESSING))
        charge = await self.processor.charge(intent, self.payment_method)
        self._ensure_current(attempt)
        return intent, charge

    def _succeed(
        self,
        attempt: PaymentAttempt,
        intent: PaymentIntent,
        charge: ChargeResult,
        on_progress: ProgressCallback,
        on_success: SuccessCallback,
    ) -> PaymentResult:
        subscription = charge.subscription
        saved = self.store.set_subscription(
            SubscriptionUpdate(
                status=SubscriptionStatus.ACTIVE,
                plan=attempt.plan,
                current_period_start=subscription.current_period_start,
                current_period_end=subscription.current_period_end,
                external_customer_ref=subscription.customer_ref,
                external_subscription_ref=subscription.subscription_ref,
                first_purchase_date=self.clock(),
            )
        )
        if not saved:
            logger.error(
                "Payment %s succeeded but subscription %s could not be saved",
                charge.payment.payment_ref,
                subscription.subscription_ref,
            )

        result = PaymentResult(
            plan=attempt.plan,
            amount=intent.amount,
            currency=intent.currency,
            is_first_time=attempt.is_first_time,
            retry_count=attempt.retry_count,
            payment=charge.payment,
            subscription=subscription,
            subscription_saved=saved,
        )
        attempt.phase = PaymentPhase.SUCCESS
        logger.info(
            "Subscription payment succeeded plan=%s amount=%s %s first_time=%s retries=%s",
            attempt.plan.value,
            intent.amount,
            intent.currency,
            attempt.is_first_time,
            attempt.retry_count,
        )
        on_progress(PaymentProgress.for_step(ProgressStep.COMPLETE))
        self._attempt = None
        self.store.set_payment_processing(False, self.store.payment_error)
        on_success(result)
        return result

    def _fail(
        self,
        attempt: PaymentAttempt,
        classified: ClassifiedPaymentError,
        on_error: ErrorCallback,
    ) -> None:
        attempt.phase = PaymentPhase.FAILED
        logger.warning(
            "Subscription payment failed plan=%s category=%s retries=%s: %s",
            attempt.plan.value,
            classified.category.value,
            attempt.retry_count,
            classified.original_message,
        )
        self._attempt = None
        self.store.set_payment_processing(False, classified.message)
        on_error(classified)

    def _ensure_current(self, attempt: PaymentAttempt) -> None:
        if self._attempt is not attempt:
            raise PaymentCancelledError("Payment attempt was cancelled")

    async def cancel_payment(self) -> bool:
        attempt = self._attempt
        if attempt is None:
            return True

        self._attempt = None
        self.store.set_payment_processing(False)
        if attempt.intent_ref:
            try:
                await self.processor.cancel_intent(attempt.intent_ref)
            except Exception:
                logger.warning("Failed to cancel payment intent %s", attempt.intent_ref, exc_info=True)
        logger.info("Cancelled subscription payment plan=%s", attempt.plan.value)
        return True

    def reset(self) -> None:
        """Drop any attempt state without contacting the processor."""

        self._attempt = None
        self.store.set_payment_processing(False)

    def get_payment_status(self) -> PaymentStatus:
        attempt = self._attempt
        if attempt is None:
            return PaymentStatus(status=PaymentPhase.IDLE)
        return PaymentStatus(
            status=attempt.phase,
            plan=attempt.plan,
            started_at=attempt.started_at,
            retry_count=attempt.retry_count,
        )


__all__ = [
    "ErrorCallback",
    "PaymentFlowOrchestrator",
    "ProgressCallback",
    "SuccessCallback",
]
