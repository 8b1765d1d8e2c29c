"""Models exchanged between the payment orchestrator and the processor."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..pricing import SubscriptionPlan
from ..subscriptions import SubscriptionStatus


class AccountContext(BaseModel):
    """Authenticated account purchasing the subscription."""

    account_id: str
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PaymentIntent(BaseModel):
    """Processor-side handle for a charge that has not completed yet."""

    intent_ref: str
    client_secret: str
    amount: int = Field(ge=0)
    currency: str
    plan: SubscriptionPlan
    is_first_time: bool = False
    customer_ref: Optional[str] = None
    subscription_ref: Optional[str] = None
    status: str = "requires_payment_method"
    metadata: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class PaymentMethod(BaseModel):
    type: str = "card"

    model_config = ConfigDict(frozen=True)


class ConfirmationResult(BaseModel):
    success: bool
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProcessorPayment(BaseModel):
    payment_ref: str
    status: str
    amount: int
    currency: str

    model_config = ConfigDict(frozen=True)


class ProcessorSubscription(BaseModel):
    """Subscription as reported by the processor after a charge."""

    subscription_ref: str
    customer_ref: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class ChargeResult(BaseModel):
    payment: ProcessorPayment
    subscription: ProcessorSubscription

    model_config = ConfigDict(frozen=True)


class CancellationAck(BaseModel):
    subscription_ref: str
    status: SubscriptionStatus = SubscriptionStatus.CANCELED
    canceled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cancel_at_period_end: bool = True
    reason: str = "user_request"

    model_config = ConfigDict(frozen=True)


class PaymentPhase(str, Enum):
    """States of a single subscription purchase attempt."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CREATING_INTENT = "creating_intent"
    PAYMENT_READY = "payment_ready"
    PROCESSING = "processing"
    SUCCESS = "success"
    RETRYING = "retrying"
    FAILED = "failed"


class ProgressStep(str, Enum):
    """Progress milestones reported to the caller."""

    INITIALIZING = "initializing"
    CREATING_INTENT = "creating_intent"
    PAYMENT_READY = "payment_ready"
    PROCESSING = "processing"
    COMPLETE = "complete"


PROGRESS_PERCENT: Dict[ProgressStep, int] = {
    ProgressStep.INITIALIZING: 10,
    ProgressStep.CREATING_INTENT: 30,
    ProgressStep.PAYMENT_READY: 50,
    ProgressStep.PROCESSING: 80,
    ProgressStep.COMPLETE: 100,
}


class PaymentProgress(BaseModel):
    step: ProgressStep
    progress: int = Field(ge=0, le=100)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_step(cls, step: ProgressStep) -> "PaymentProgress":
        return cls(step=step, progress=PROGRESS_PERCENT[step])


@dataclass
class PaymentAttempt:
    """In-flight purchase attempt; lives only on the orchestrator."""

    plan: SubscriptionPlan
    is_first_time: bool
    started_at: datetime
    retry_count: int = 0
    intent_ref: Optional[str] = None
    phase: PaymentPhase = PaymentPhase.INITIALIZING


class PaymentResult(BaseModel):
    """Outcome of a successful subscription purchase.

    ``subscription_saved`` is ``False`` when the charge went through but the
    subscription could not be written to the store.
    """

    plan: SubscriptionPlan
    amount: int
    currency: str
    is_first_time: bool
    retry_count: int = 0
    payment: ProcessorPayment
    subscription: ProcessorSubscription
    subscription_saved: bool = True

    model_config = ConfigDict(frozen=True)


class PaymentStatus(BaseModel):
    status: PaymentPhase
    plan: Optional[SubscriptionPlan] = None
    started_at: Optional[datetime] = None
    retry_count: int = 0

    model_config = ConfigDict(frozen=True)


__all__ = [
    "AccountContext",
    "CancellationAck",
    "ChargeResult",
    "ConfirmationResult",
    "PROGRESS_PERCENT",
    "PaymentAttempt",
    "PaymentIntent",
    "PaymentMethod",
    "PaymentPhase",
    "PaymentProgress",
    "PaymentResult",
    "PaymentStatus",
    "ProcessorPayment",
    "ProcessorSubscription",
    "ProgressStep",
]
