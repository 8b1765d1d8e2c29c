"""Payment error taxonomy and message-based classification."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict


class ErrorCategory(str, Enum):
    """Closed set of categories a processor failure is mapped to."""

    CARD_DECLINED = "card_declined"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EXPIRED_CARD = "expired_card"
    INCORRECT_CVC = "incorrect_cvc"
    PROCESSING_ERROR = "processing_error"
    NETWORK_ERROR = "network_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    TEMPORARY_FAILURE = "temporary_failure"
    UNKNOWN_ERROR = "unknown_error"


class PaymentAction(str, Enum):
    """Next steps a customer may take after a failed payment."""

    RETRY = "retry"
    CHANGE_CARD = "change_card"


@dataclass(frozen=True)
class ClassificationRule:
    substrings: Tuple[str, ...]
    category: ErrorCategory

    def matches(self, message: str) -> bool:
        return any(substring in message for substring in self.substrings)


# First matching rule wins.
CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(("declined",), ErrorCategory.CARD_DECLINED),
    ClassificationRule(("insufficient",), ErrorCategory.INSUFFICIENT_FUNDS),
    ClassificationRule(("expired",), ErrorCategory.EXPIRED_CARD),
    ClassificationRule(("cvc", "security code"), ErrorCategory.INCORRECT_CVC),
    ClassificationRule(("network", "connection"), ErrorCategory.NETWORK_ERROR),
    ClassificationRule(("processing",), ErrorCategory.PROCESSING_ERROR),
    ClassificationRule(("rate_limit", "rate limit", "too many requests"), ErrorCategory.RATE_LIMIT_ERROR),
    ClassificationRule(("temporary", "temporarily"), ErrorCategory.TEMPORARY_FAILURE),
)

RETRYABLE_CATEGORIES: FrozenSet[ErrorCategory] = frozenset(
    {
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.PROCESSING_ERROR,
        ErrorCategory.RATE_LIMIT_ERROR,
        ErrorCategory.TEMPORARY_FAILURE,
    }
)


@dataclass(frozen=True)
class ErrorPresentation:
    title: str
    message: str
    actions: Tuple[PaymentAction, ...]


ERROR_PRESENTATIONS: Dict[ErrorCategory, ErrorPresentation] = {
    ErrorCategory.CARD_DECLINED: ErrorPresentation(
        "Card Declined",
        "Your card was declined. Please check your card details or try a different payment method.",
        (PaymentAction.RETRY, PaymentAction.CHANGE_CARD),
    ),
    ErrorCategory.INSUFFICIENT_FUNDS: ErrorPresentation(
        "Insufficient Funds",
        "Your card has insufficient funds. Please check your account balance or use a different card.",
        (PaymentAction.CHANGE_CARD,),
    ),
    ErrorCategory.EXPIRED_CARD: ErrorPresentation(
        "Card Expired",
        "Your card has expired. Please use a different payment method.",
        (PaymentAction.CHANGE_CARD,),
    ),
    ErrorCategory.INCORRECT_CVC: ErrorPresentation(
        "Invalid Security Code",
        "The security code (CVC) is incorrect. Please check and try again.",
        (PaymentAction.RETRY,),
    ),
    ErrorCategory.PROCESSING_ERROR: ErrorPresentation(
        "Processing Error",
        "There was an error processing your payment. Please try again.",
        (PaymentAction.RETRY,),
    ),
    ErrorCategory.NETWORK_ERROR: ErrorPresentation(
        "Connection Error",
        "Please check your internet connection and try again.",
        (PaymentAction.RETRY,),
    ),
    ErrorCategory.RATE_LIMIT_ERROR: ErrorPresentation(
        "Too Many Attempts",
        "The payment service is busy right now. Please wait a moment and try again.",
        (PaymentAction.RETRY,),
    ),
    ErrorCategory.TEMPORARY_FAILURE: ErrorPresentation(
        "Temporary Problem",
        "The payment service is temporarily unavailable. Please try again shortly.",
        (PaymentAction.RETRY,),
    ),
}

_UNKNOWN_TITLE = "Payment Error"
_UNKNOWN_MESSAGE = "An unexpected error occurred. Please try again."


class ClassifiedPaymentError(BaseModel):
    """User-facing description of a failed payment."""

    category: ErrorCategory
    retryable: bool
    title: str
    message: str
    actions: List[PaymentAction]
    can_retry: bool
    original_message: str = ""

    model_config = ConfigDict(frozen=True)


def _message_of(error: Union[BaseException, str, None]) -> str:
    if error is None:
        return ""
    if isinstance(error, BaseException):
        return str(error)
    return error


def classify(error: Union[BaseException, str, None]) -> ErrorCategory:
    """Map an error (or its message) to an :class:`ErrorCategory`."""

    message = _message_of(error).lower()
    for rule in CLASSIFICATION_RULES:
        if rule.matches(message):
            return rule.category
    return ErrorCategory.UNKNOWN_ERROR


def is_retryable(category: ErrorCategory) -> bool:
    return category in RETRYABLE_CATEGORIES


def describe_payment_error(
    error: Union[BaseException, str, None],
    *,
    retry_count: int = 0,
    max_retries: int = 3,
) -> ClassifiedPaymentError:
    original_message = _message_of(error)
    category = classify(original_message)
    retryable = is_retryable(category)
    presentation = ERROR_PRESENTATIONS.get(category)
    if presentation is None:
        presentation = ErrorPresentation(
            _UNKNOWN_TITLE,
            original_message or _UNKNOWN_MESSAGE,
            (PaymentAction.RETRY,),
        )
    return ClassifiedPaymentError(
        category=category,
        retryable=retryable,
        title=presentation.title,
        message=presentation.message,
        actions=list(presentation.actions),
        can_retry=retryable and retry_count < max_retries,
        original_message=original_message,
    )


class PaymentError(Exception):
    """Base class for payment flow failures."""


class AuthRequiredError(PaymentError):
    """Raised when a purchase is attempted without an authenticated account."""


class ConcurrentAttemptError(PaymentError):
    """Raised when a payment is started while another attempt is still active."""


class ProcessorError(PaymentError):
    """Failure reported by the payment processor; its message drives classification."""


class PaymentCancelledError(PaymentError):
    """Raised to the caller whose in-flight attempt was cancelled."""


class PaymentFailedError(PaymentError):
    """Terminal payment failure carrying the classified, user-facing error."""

    def __init__(self, error: ClassifiedPaymentError) -> None:
        self.error = error
        super().__init__(error.original_message or error.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self.error.model_dump(mode="json")


__all__ = [
    "AuthRequiredError",
    "CLASSIFICATION_RULES",
    "ClassificationRule",
    "ClassifiedPaymentError",
    "ConcurrentAttemptError",
    "ERROR_PRESENTATIONS",
    "ErrorCategory",
    "ErrorPresentation",
    "PaymentAction",
    "PaymentCancelledError",
    "PaymentError",
    "PaymentFailedError",
    "ProcessorError",
    "RETRYABLE_CATEGORIES",
    "classify",
    "describe_payment_error",
    "is_retryable",
]
