"""Application wiring for subscription payments and account preferences."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from functools import lru_cache

from ..payments import (
    ClassifiedPaymentError,
    PaymentFlowOrchestrator,
    PaymentProcessorClient,
    PaymentProgress,
    PaymentResult,
    PaymentsConfig,
    SandboxPaymentProcessor,
    SubscriptionLifecycleService,
    load_payments_config,
)
from ..pricing import DEFAULT_PRICING
from ..subscriptions import (
    KeyValueStorage,
    PostgresKeyValueStorage,
    SubscriptionStore,
    UserPreferencesStore,
)


logger = logging.getLogger("payments")

_ACCOUNT_CACHE_SIZE = 1024


class LoggingPaymentObserver:
    """Observer that records checkout progress and outcomes to the application logger."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id

    def on_progress(self, progress: PaymentProgress) -> None:
        logger.debug(
            "Checkout progress account=%s step=%s progress=%s",
            self.account_id,
            progress.step.value,
            progress.progress,
        )

    def on_success(self, result: PaymentResult) -> None:
        logger.info(
            "Checkout completed account=%s plan=%s payment=%s",
            self.account_id,
            result.plan.value,
            result.payment.payment_ref,
        )

    def on_error(self, error: ClassifiedPaymentError) -> None:
        logger.warning(
            "Checkout failed account=%s category=%s can_retry=%s",
            self.account_id,
            error.category.value,
            error.can_retry,
        )


@lru_cache(maxsize=1)
def get_payments_config() -> PaymentsConfig:
    return load_payments_config()


@lru_cache(maxsize=1)
def get_kv_storage() -> KeyValueStorage:
    return PostgresKeyValueStorage()


@lru_cache(maxsize=1)
def get_payment_processor() -> PaymentProcessorClient:
    config = get_payments_config()
    if config.processor_name != "sandbox":
        raise ValueError(f"Unsupported payment processor: {config.processor_name}")
    logger.info("Using sandbox payment processor decline_rate=%s", config.sandbox_decline_rate)
    return SandboxPaymentProcessor(decline_rate=config.sandbox_decline_rate)


@dataclass(frozen=True)
class AccountServices:
    """Per-account services sharing a single subscription store."""

    store: SubscriptionStore
    orchestrator: PaymentFlowOrchestrator
    lifecycle: SubscriptionLifecycleService


@lru_cache(maxsize=_ACCOUNT_CACHE_SIZE)
def get_account_services(account_id: str) -> AccountServices:
    config = get_payments_config()
    processor = get_payment_processor()
    store = SubscriptionStore(
        storage=get_kv_storage(),
        account_id=account_id,
        plan=replace(DEFAULT_PRICING, currency=config.currency),
        namespace=config.storage_namespace,
    )
    store.initialize()
    return AccountServices(
        store=store,
        orchestrator=PaymentFlowOrchestrator(
            store=store,
            processor=processor,
            max_retries=config.max_retries,
            backoff_base_seconds=config.backoff_seconds,
        ),
        lifecycle=SubscriptionLifecycleService(store=store, processor=processor),
    )


def get_subscription_store(account_id: str) -> SubscriptionStore:
    return get_account_services(account_id).store


@lru_cache(maxsize=_ACCOUNT_CACHE_SIZE)
def get_preferences_store(account_id: str) -> UserPreferencesStore:
    store = UserPreferencesStore(
        storage=get_kv_storage(),
        account_id=account_id,
        namespace=get_payments_config().storage_namespace,
    )
    store.initialize()
    return store


def get_payment_orchestrator(account_id: str) -> PaymentFlowOrchestrator:
    return get_account_services(account_id).orchestrator


def get_lifecycle_service(account_id: str) -> SubscriptionLifecycleService:
    return get_account_services(account_id).lifecycle


__all__ = [
    "AccountServices",
    "LoggingPaymentObserver",
    "get_account_services",
    "get_kv_storage",
    "get_lifecycle_service",
    "get_payment_orchestrator",
    "get_payment_processor",
    "get_payments_config",
    "get_preferences_store",
    "get_subscription_store",
]
