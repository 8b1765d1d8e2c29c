from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from pitchpass.app.payments import (
    AccountContext,
    ConcurrentAttemptError,
    PaymentFlowOrchestrator,
    SandboxPaymentProcessor,
    SandboxStep,
    SubscriptionLifecycleService,
)
from pitchpass.app.pricing import SubscriptionPlan
from pitchpass.app.routes import pricing as pricing_routes
from pitchpass.app.routes import subscriptions as subscription_routes
from pitchpass.app.routes import user_preferences as preferences_routes
from pitchpass.app.schemas.subscriptions import (
    CancelSubscriptionRequest,
    CheckoutRequest,
    ContentPreferencesUpdate,
    QuoteRequest,
    SubscriptionEventPayload,
)
from pitchpass.app.services import subscriptions as subscriptions_service
from pitchpass.app.subscriptions import (
    InMemoryKeyValueStorage,
    SubscriptionStatus,
    SubscriptionStore,
    SubscriptionUpdate,
    UserPreferencesStore,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
USER = AccountContext(account_id="acct-7", email="fan@example.com")


class NoWaitSleep:
    async def __call__(self, delay: float) -> None:
        return None


@pytest.fixture
def store(monkeypatch) -> SubscriptionStore:
    store = SubscriptionStore(storage=InMemoryKeyValueStorage(), account_id=USER.account_id, clock=lambda: NOW)
    store.initialize()
    monkeypatch.setattr(subscriptions_service, "get_subscription_store", lambda account_id: store)
    return store


@pytest.fixture
def processor() -> SandboxPaymentProcessor:
    return SandboxPaymentProcessor(clock=lambda: NOW)


@pytest.fixture
def orchestrator(monkeypatch, store, processor) -> PaymentFlowOrchestrator:
    orchestrator = PaymentFlowOrchestrator(store=store, processor=processor, sleep=NoWaitSleep(), clock=lambda: NOW)
    monkeypatch.setattr(subscriptions_service, "get_payment_orchestrator", lambda account_id: orchestrator)
    return orchestrator


@pytest.fixture
def lifecycle(monkeypatch, store, processor) -> SubscriptionLifecycleService:
    service = SubscriptionLifecycleService(store=store, processor=processor)
    monkeypatch.setattr(subscriptions_service, "get_lifecycle_service", lambda account_id: service)
    return service


def _activate(store: SubscriptionStore) -> None:
    store.set_subscription(
        SubscriptionUpdate(
            status=SubscriptionStatus.ACTIVE,
            plan=SubscriptionPlan.MONTHLY,
            current_period_end=NOW + timedelta(days=30),
            external_subscription_ref="sub_555",
            first_purchase_date=NOW,
        )
    )


def test_summary_for_free_account(store):
    summary = subscription_routes.get_subscription_summary(current_user=USER)

    assert summary.status == "inactive"
    assert summary.display_status == "Free Plan"


def test_pricing_reflects_first_time_discount(store):
    pricing = subscription_routes.get_subscription_pricing(current_user=USER)

    assert pricing.monthly == 37000
    assert pricing.is_first_time_discount is True


@pytest.mark.asyncio
async def test_checkout_activates_subscription(store, orchestrator):
    result = await subscription_routes.checkout(CheckoutRequest(plan="yearly"), current_user=USER)

    assert result.plan == SubscriptionPlan.YEARLY
    assert result.amount == 432000
    assert store.status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_checkout_declined_maps_to_payment_required(store, orchestrator, processor):
    processor.queue_failure(SandboxStep.CHARGE, "Your card was declined.")

    with pytest.raises(HTTPException) as exc_info:
        await subscription_routes.checkout(CheckoutRequest(plan="monthly"), current_user=USER)

    assert exc_info.value.status_code == 402
    assert exc_info.value.detail["category"] == "card_declined"
    assert exc_info.value.detail["can_retry"] is False


@pytest.mark.asyncio
async def test_checkout_conflict_maps_to_409(monkeypatch):
    class BusyOrchestrator:
        async def initiate_subscription_payment(self, plan, **kwargs):
            raise ConcurrentAttemptError("A subscription payment is already in progress")

    monkeypatch.setattr(subscriptions_service, "get_payment_orchestrator", lambda account_id: BusyOrchestrator())

    with pytest.raises(HTTPException) as exc_info:
        await subscription_routes.checkout(CheckoutRequest(plan="monthly"), current_user=USER)

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_cancel_checkout_is_idempotent(orchestrator):
    response = await subscription_routes.cancel_checkout(current_user=USER)

    assert response.cancelled is True


@pytest.mark.asyncio
async def test_cancel_subscription_without_subscription_is_not_found(lifecycle):
    with pytest.raises(HTTPException) as exc_info:
        await subscription_routes.cancel_subscription(CancelSubscriptionRequest(), current_user=USER)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_and_reactivate_subscription(store, lifecycle):
    _activate(store)

    ack = await subscription_routes.cancel_subscription(
        CancelSubscriptionRequest(reason="moving_abroad"), current_user=USER
    )
    assert ack.subscription_ref == "sub_555"
    assert store.status == SubscriptionStatus.CANCELED

    response = await subscription_routes.reactivate_subscription(current_user=USER)
    assert response.reactivated is True
    assert store.status == SubscriptionStatus.ACTIVE


def test_subscription_event_is_applied(store, lifecycle):
    _activate(store)
    payload = SubscriptionEventPayload.model_validate(
        {"type": "invoice.payment_failed", "subscriptionRef": "sub_555", "accountId": USER.account_id}
    )

    response = subscription_routes.receive_subscription_event(payload)

    assert response.status_code == 204
    assert store.status == SubscriptionStatus.PAST_DUE


def test_subscription_event_without_status_is_rejected(store, lifecycle):
    _activate(store)
    payload = SubscriptionEventPayload.model_validate(
        {"type": "customer.subscription.updated", "subscriptionRef": "sub_555", "accountId": USER.account_id}
    )

    with pytest.raises(HTTPException) as exc_info:
        subscription_routes.receive_subscription_event(payload)

    assert exc_info.value.status_code == 400


def test_quote_route_returns_breakdown():
    quote = pricing_routes.quote_booking(
        QuoteRequest.model_validate({"basePricePerHour": 12500, "durationHours": 2, "isFirstBooking": True})
    )

    assert quote.total == 22750
    assert quote.duration_discount == 2500


@pytest.fixture
def preferences(monkeypatch) -> UserPreferencesStore:
    store = UserPreferencesStore(storage=InMemoryKeyValueStorage(), account_id=USER.account_id, clock=lambda: NOW)
    store.initialize()
    monkeypatch.setattr(subscriptions_service, "get_preferences_store", lambda account_id: store)
    return store


def test_content_preferences_update_and_read(preferences):
    payload = ContentPreferencesUpdate.model_validate(
        {
            "favoriteClub": {"id": "enyimba", "name": "Enyimba FC"},
            "preferredCategories": ["transfers"],
            "notificationSettings": {"newsUpdates": False},
        }
    )

    updated = preferences_routes.update_content_preferences(payload, current_user=USER)
    fetched = preferences_routes.get_content_preferences(current_user=USER)

    assert updated == fetched
    assert fetched.favorite_club.id == "enyimba"
    assert fetched.preferred_categories == ["transfers"]
    assert fetched.notification_settings.news_updates is False
    assert fetched.notification_settings.live_match_alerts is True


def test_content_preferences_null_club_clears_selection(preferences):
    preferences_routes.update_content_preferences(
        ContentPreferencesUpdate.model_validate({"favoriteClub": {"id": "enyimba", "name": "Enyimba FC"}}),
        current_user=USER,
    )

    cleared = preferences_routes.update_content_preferences(
        ContentPreferencesUpdate.model_validate({"favoriteClub": None}),
        current_user=USER,
    )
    untouched = preferences_routes.update_content_preferences(
        ContentPreferencesUpdate.model_validate({"contentLanguage": "yo"}),
        current_user=USER,
    )

    assert cleared.favorite_club is None
    assert untouched.content_language == "yo"


def test_content_preferences_write_failure_is_unavailable(monkeypatch):
    class BrokenStorage(InMemoryKeyValueStorage):
        def set(self, key: str, value: str) -> None:
            raise ConnectionError("storage offline")

    store = UserPreferencesStore(storage=BrokenStorage(), account_id=USER.account_id)
    monkeypatch.setattr(subscriptions_service, "get_preferences_store", lambda account_id: store)

    with pytest.raises(HTTPException) as exc_info:
        preferences_routes.update_content_preferences(
            ContentPreferencesUpdate.model_validate({"contentLanguage": "ha"}),
            current_user=USER,
        )

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_cancel_unpaid_subscription_conflicts(store, lifecycle, processor):
    _activate(store)
    store.update_subscription_status(SubscriptionStatus.PAST_DUE)
    store.update_subscription_status(SubscriptionStatus.UNPAID)

    with pytest.raises(HTTPException) as exc_info:
        await subscription_routes.cancel_subscription(CancelSubscriptionRequest(), current_user=USER)

    assert exc_info.value.status_code == 409
    assert SandboxStep.CANCEL_SUBSCRIPTION not in processor.calls


def test_disallowed_event_transition_is_acknowledged(store, lifecycle):
    _activate(store)
    store.update_subscription_status(SubscriptionStatus.CANCELED)
    payload = SubscriptionEventPayload.model_validate(
        {"type": "invoice.payment_failed", "subscriptionRef": "sub_555", "accountId": USER.account_id}
    )

    response = subscription_routes.receive_subscription_event(payload)

    assert response.status_code == 204
    assert store.status == SubscriptionStatus.CANCELED


def test_event_for_account_without_subscription_grants_nothing(store, lifecycle):
    payload = SubscriptionEventPayload.model_validate(
        {
            "type": "invoice.payment_succeeded",
            "subscriptionRef": "sub_forged",
            "currentPeriodEnd": (NOW + timedelta(days=365)).isoformat(),
            "accountId": USER.account_id,
        }
    )

    response = subscription_routes.receive_subscription_event(payload)

    assert response.status_code == 204
    assert store.status == SubscriptionStatus.INACTIVE
    assert store.is_premium() is False


@pytest.mark.asyncio
async def test_checkout_with_unsaved_subscription_is_unavailable(monkeypatch, processor):
    class ReadOnlyStorage(InMemoryKeyValueStorage):
        def set(self, key: str, value: str) -> None:
            raise ConnectionError("storage offline")

    store = SubscriptionStore(storage=ReadOnlyStorage(), account_id=USER.account_id, clock=lambda: NOW)
    store.initialize()
    orchestrator = PaymentFlowOrchestrator(store=store, processor=processor, sleep=NoWaitSleep(), clock=lambda: NOW)
    monkeypatch.setattr(subscriptions_service, "get_payment_orchestrator", lambda account_id: orchestrator)

    with pytest.raises(HTTPException) as exc_info:
        await subscription_routes.checkout(CheckoutRequest(plan="monthly"), current_user=USER)

    assert exc_info.value.status_code == 503
    assert exc_info.value.detail["payment_ref"]
    assert exc_info.value.detail["subscription_ref"]
    assert store.status == SubscriptionStatus.INACTIVE
