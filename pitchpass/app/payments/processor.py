"""Payment processor contract and the local sandbox implementation."""
from __future__ import annotations

import logging
import random
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Protocol
from uuid import uuid4

from ..pricing import SubscriptionPlan
from ..subscriptions import SubscriptionStatus
from .errors import ProcessorError
from .models import (
    AccountContext,
    CancellationAck,
    ChargeResult,
    ConfirmationResult,
    PaymentIntent,
    PaymentMethod,
    ProcessorPayment,
    ProcessorSubscription,
)

logger = logging.getLogger("payments.processor")

DECLINED_MESSAGE = "Your card was declined. Please try a different payment method."


class PaymentProcessorClient(Protocol):
    """External payment processor integration.

    Any call may raise; the exception message is all the orchestrator uses to
    classify the failure.
    """

    async def create_subscription_intent(
        self,
        *,
        plan: SubscriptionPlan,
        account: AccountContext,
        is_first_time: bool,
        amount: int,
        currency: str,
    ) -> PaymentIntent:
        """Create an intent for the subscription charge."""

    async def collect_and_confirm(self, intent: PaymentIntent) -> ConfirmationResult:
        """Collect payment details from the customer and confirm the intent."""

    async def charge(self, intent: PaymentIntent, payment_method: PaymentMethod) -> ChargeResult:
        """Execute the charge and create the subscription."""

    async def cancel_intent(self, intent_ref: str) -> None:
        """Cancel an intent that has not been charged."""

    async def cancel_subscription(self, subscription_ref: str, reason: str) -> CancellationAck:
        ...

    async def reactivate_subscription(self, subscription_ref: str) -> ProcessorSubscription:
        ...


class SandboxStep(str, Enum):
    """Processor calls that accept injected failures."""

    CREATE_INTENT = "create_intent"
    CONFIRM = "confirm"
    CHARGE = "charge"
    CANCEL_SUBSCRIPTION = "cancel_subscription"
    REACTIVATE = "reactivate"


_PERIOD_DAYS: Dict[SubscriptionPlan, int] = {
    SubscriptionPlan.MONTHLY: 30,
    SubscriptionPlan.YEARLY: 365,
}


class SandboxPaymentProcessor(PaymentProcessorClient):
    """Processor implementation for local development and tests.

    Failures are injected with :meth:`queue_failure` or by a decline rate
    applied at charge time.
    """

    def __init__(
        self,
        *,
        decline_rate: float = 0.0,
        random_source: Callable[[], float] = random.random,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if not 0.0 <= decline_rate <= 1.0:
            raise ValueError("decline_rate must be between 0 and 1")
        self.decline_rate = decline_rate
        self._random = random_source
        self._clock = clock
        self._failures: Dict[SandboxStep, Deque[str]] = defaultdict(deque)
        self.intents: Dict[str, PaymentIntent] = {}
        self.canceled_intents: List[str] = []
        self.calls: List[SandboxStep] = []

    def queue_failure(self, step: SandboxStep, message: str, *, times: int = 1) -> None:
        for _ in range(times):
            self._failures[step].append(message)

    def _take_failure(self, step: SandboxStep) -> Optional[str]:
        self.calls.append(step)
        queue = self._failures.get(step)
        if queue:
            return queue.popleft()
        return None

    def _raise_if_queued(self, step: SandboxStep) -> None:
        failure = self._take_failure(step)
        if failure is not None:
            raise ProcessorError(failure)

    async def create_subscription_intent(
        self,
        *,
        plan: SubscriptionPlan,
        account: AccountContext,
        is_first_time: bool,
        amount: int,
        currency: str,
    ) -> PaymentIntent:
        self._raise_if_queued(SandboxStep.CREATE_INTENT)
        token = uuid4().hex
        intent = PaymentIntent(
            intent_ref=f"pi_{token}",
            client_secret=f"pi_{token}_secret_{uuid4().hex[:9]}",
            amount=amount,
            currency=currency,
            plan=plan,
            is_first_time=is_first_time,
            customer_ref=f"cus_{account.account_id}",
            subscription_ref=f"sub_{token}",
            metadata={
                "plan": plan.value,
                "is_first_time": str(is_first_time).lower(),
                "account_id": account.account_id,
            },
        )
        self.intents[intent.intent_ref] = intent
        return intent

    async def collect_and_confirm(self, intent: PaymentIntent) -> ConfirmationResult:
        failure = self._take_failure(SandboxStep.CONFIRM)
        if failure is not None:
            return ConfirmationResult(success=False, error=failure)
        return ConfirmationResult(success=True)

    async def charge(self, intent: PaymentIntent, payment_method: PaymentMethod) -> ChargeResult:
        self._raise_if_queued(SandboxStep.CHARGE)
        if self.decline_rate and self._random() < self.decline_rate:
            raise ProcessorError(DECLINED_MESSAGE)

        now = self._clock()
        logger.info("Sandbox charge intent=%s amount=%s %s", intent.intent_ref, intent.amount, intent.currency)
        return ChargeResult(
            payment=ProcessorPayment(
                payment_ref=intent.intent_ref,
                status="succeeded",
                amount=intent.amount,
                currency=intent.currency,
            ),
            subscription=ProcessorSubscription(
                subscription_ref=intent.subscription_ref or f"sub_{uuid4().hex}",
                customer_ref=intent.customer_ref,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=now,
                current_period_end=now + timedelta(days=_PERIOD_DAYS[intent.plan]),
            ),
        )

    async def cancel_intent(self, intent_ref: str) -> None:
        self.intents.pop(intent_ref, None)
        self.canceled_intents.append(intent_ref)

    async def cancel_subscription(self, subscription_ref: str, reason: str) -> CancellationAck:
        self._raise_if_queued(SandboxStep.CANCEL_SUBSCRIPTION)
        return CancellationAck(subscription_ref=subscription_ref, canceled_at=self._clock(), reason=reason)

    async def reactivate_subscription(self, subscription_ref: str) -> ProcessorSubscription:
        self._raise_if_queued(SandboxStep.REACTIVATE)
        now = self._clock()
        return ProcessorSubscription(
            subscription_ref=subscription_ref,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=now,
            current_period_end=now + timedelta(days=_PERIOD_DAYS[SubscriptionPlan.MONTHLY]),
        )


__all__ = [
    "DECLINED_MESSAGE",
    "PaymentProcessorClient",
    "SandboxPaymentProcessor",
    "SandboxStep",
]
