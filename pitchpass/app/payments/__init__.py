"""Subscription payment orchestration, processor contract and error taxonomy."""

from .config import PaymentsConfig, load_payments_config
from .errors import (
    CLASSIFICATION_RULES,
    ERROR_PRESENTATIONS,
    RETRYABLE_CATEGORIES,
    AuthRequiredError,
    ClassifiedPaymentError,
    ConcurrentAttemptError,
    ErrorCategory,
    PaymentAction,
    PaymentCancelledError,
    PaymentError,
    PaymentFailedError,
    ProcessorError,
    classify,
    describe_payment_error,
)
from .lifecycle import SubscriptionEventType, SubscriptionLifecycleService, SubscriptionStatusEvent
from .models import (
    AccountContext,
    CancellationAck,
    ChargeResult,
    ConfirmationResult,
    PaymentAttempt,
    PaymentIntent,
    PaymentMethod,
    PaymentPhase,
    PaymentProgress,
    PaymentResult,
    PaymentStatus,
    ProcessorPayment,
    ProcessorSubscription,
    ProgressStep,
)
from .orchestrator import PaymentFlowOrchestrator
from .processor import PaymentProcessorClient, SandboxPaymentProcessor, SandboxStep

__all__ = [
    "AccountContext",
    "AuthRequiredError",
    "CLASSIFICATION_RULES",
    "CancellationAck",
    "ChargeResult",
    "ClassifiedPaymentError",
    "ConcurrentAttemptError",
    "ConfirmationResult",
    "ERROR_PRESENTATIONS",
    "ErrorCategory",
    "PaymentAction",
    "PaymentAttempt",
    "PaymentCancelledError",
    "PaymentError",
    "PaymentFailedError",
    "PaymentFlowOrchestrator",
    "PaymentIntent",
    "PaymentMethod",
    "PaymentPhase",
    "PaymentProcessorClient",
    "PaymentProgress",
    "PaymentResult",
    "PaymentStatus",
    "PaymentsConfig",
    "ProcessorError",
    "ProcessorPayment",
    "ProcessorSubscription",
    "ProgressStep",
    "RETRYABLE_CATEGORIES",
    "SandboxPaymentProcessor",
    "SandboxStep",
    "SubscriptionEventType",
    "SubscriptionLifecycleService",
    "SubscriptionStatusEvent",
    "classify",
    "describe_payment_error",
    "load_payments_config",
]
