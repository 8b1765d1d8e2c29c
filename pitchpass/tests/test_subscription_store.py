"""Unit tests for the account subscription store."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import pytest

from pitchpass.app.pricing import SubscriptionPlan
from pitchpass.app.subscriptions import (
    AccessTier,
    InMemoryKeyValueStorage,
    InvalidStatusTransition,
    SubscriptionRecord,
    SubscriptionStatus,
    SubscriptionStore,
    SubscriptionUpdate,
    subscription_storage_key,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
KEY = subscription_storage_key("pitchpass", "acct-1")


class FlakyStorage(InMemoryKeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__(initial)
        self.fail_writes = False
        self.fail_reads = False
        self.deleted: list[str] = []

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise ConnectionError("storage offline")
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise ConnectionError("storage offline")
        super().set(key, value)

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise ConnectionError("storage offline")
        self.deleted.append(key)
        super().delete(key)


def _store(storage: Optional[InMemoryKeyValueStorage] = None, *, now: datetime = NOW) -> SubscriptionStore:
    store = SubscriptionStore(
        storage=storage if storage is not None else FlakyStorage(),
        account_id="acct-1",
        clock=lambda: now,
    )
    store.initialize()
    return store


def _active_update(period_end: datetime, **overrides) -> SubscriptionUpdate:
    values = dict(
        status=SubscriptionStatus.ACTIVE,
        plan=SubscriptionPlan.MONTHLY,
        current_period_start=NOW,
        current_period_end=period_end,
        external_customer_ref="cus_1",
        external_subscription_ref="sub_1",
        first_purchase_date=NOW,
    )
    values.update(overrides)
    return SubscriptionUpdate(**values)


def _stored(storage: InMemoryKeyValueStorage) -> dict:
    raw = storage.get(KEY)
    assert raw is not None
    return json.loads(raw)


def test_fresh_store_is_inactive_and_eligible_for_discount():
    store = _store()

    assert store.is_ready is True
    assert store.status == SubscriptionStatus.INACTIVE
    assert store.record.tier == AccessTier.FREE
    assert store.is_eligible_for_first_time_discount() is True
    assert store.get_applicable_pricing().monthly == 37000


def test_set_subscription_persists_before_publishing():
    storage = FlakyStorage()
    store = _store(storage)

    assert store.set_subscription(_active_update(NOW + timedelta(days=30))) is True

    assert store.status == SubscriptionStatus.ACTIVE
    assert store.record.tier == AccessTier.PREMIUM
    assert _stored(storage)["status"] == "active"
    assert store.is_premium() is True


def test_set_subscription_failure_leaves_state_unchanged():
    storage = FlakyStorage()
    store = _store(storage)
    storage.fail_writes = True

    assert store.set_subscription(_active_update(NOW + timedelta(days=30))) is False

    assert store.status == SubscriptionStatus.INACTIVE
    assert store.first_purchase_date is None
    assert store.payment_error == "Failed to save subscription data"
    assert storage.get(KEY) is None


def test_first_purchase_date_is_write_once():
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=30)))

    later = NOW + timedelta(days=40)
    store.set_subscription(_active_update(later + timedelta(days=30), first_purchase_date=later))

    assert store.first_purchase_date == NOW
    assert store.is_eligible_for_first_time_discount() is False
    assert store.set_first_purchase_date(later) is True
    assert store.first_purchase_date == NOW


def test_initialize_discards_stale_active_record_but_keeps_first_purchase():
    stale = SubscriptionRecord(
        status=SubscriptionStatus.ACTIVE,
        tier=AccessTier.PREMIUM,
        plan=SubscriptionPlan.MONTHLY,
        current_period_end=NOW - timedelta(seconds=1),
        first_purchase_date=NOW - timedelta(days=31),
    )
    storage = FlakyStorage({KEY: stale.model_dump_json()})

    store = _store(storage)

    assert store.status == SubscriptionStatus.INACTIVE
    assert store.is_premium() is False
    assert store.first_purchase_date == NOW - timedelta(days=31)
    assert _stored(storage)["status"] == "inactive"


def test_initialize_discards_unreadable_record():
    storage = FlakyStorage({KEY: "{not json"})

    store = _store(storage)

    assert store.status == SubscriptionStatus.INACTIVE
    assert storage.deleted == [KEY]


def test_initialize_keeps_valid_record():
    record = SubscriptionRecord(
        status=SubscriptionStatus.ACTIVE,
        tier=AccessTier.PREMIUM,
        current_period_end=NOW + timedelta(days=3),
    )
    store = _store(FlakyStorage({KEY: record.model_dump_json()}))

    assert store.status == SubscriptionStatus.ACTIVE
    assert store.current_period_end == NOW + timedelta(days=3)


def test_initialize_read_failure_marks_ready_with_error():
    storage = FlakyStorage()
    storage.fail_reads = True

    store = _store(storage)

    assert store.is_ready is True
    assert store.payment_error == "Failed to load subscription data"
    assert store.status == SubscriptionStatus.INACTIVE


def test_clear_subscription_keeps_discount_ineligibility():
    storage = FlakyStorage()
    store = _store(storage)
    store.set_subscription(_active_update(NOW + timedelta(days=30)))

    assert store.clear_subscription() is True

    assert store.status == SubscriptionStatus.INACTIVE
    assert store.is_eligible_for_first_time_discount() is False
    assert _stored(storage)["first_purchase_date"] is not None


def test_clear_subscription_without_purchase_deletes_record():
    storage = FlakyStorage()
    store = _store(storage)

    assert store.clear_subscription() is True
    assert storage.deleted == [KEY]


@pytest.mark.parametrize(
    "sequence",
    [
        [SubscriptionStatus.PAST_DUE, SubscriptionStatus.ACTIVE],
        [SubscriptionStatus.PAST_DUE, SubscriptionStatus.UNPAID],
        [SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED],
        [SubscriptionStatus.CANCELED],
    ],
)
def test_allowed_status_transitions(sequence):
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=30)))

    for status in sequence:
        assert store.update_subscription_status(status) is True

    assert store.status == sequence[-1]
    assert store.record.tier == (AccessTier.PREMIUM if sequence[-1] == SubscriptionStatus.ACTIVE else AccessTier.FREE)


def test_canceled_cannot_move_to_past_due():
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=30)))
    store.update_subscription_status(SubscriptionStatus.CANCELED)

    with pytest.raises(InvalidStatusTransition) as exc_info:
        store.update_subscription_status(SubscriptionStatus.PAST_DUE)

    assert exc_info.value.current == SubscriptionStatus.CANCELED
    assert exc_info.value.requested == SubscriptionStatus.PAST_DUE
    assert store.status == SubscriptionStatus.CANCELED


def test_status_update_applies_new_period_end():
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=30)))

    new_end = NOW + timedelta(days=60)
    assert store.update_subscription_status(SubscriptionStatus.ACTIVE, new_end) is True
    assert store.current_period_end == new_end


def test_status_update_failure_returns_false():
    storage = FlakyStorage()
    store = _store(storage)
    store.set_subscription(_active_update(NOW + timedelta(days=30)))
    storage.fail_writes = True

    assert store.update_subscription_status(SubscriptionStatus.PAST_DUE) is False
    assert store.status == SubscriptionStatus.ACTIVE


@pytest.mark.parametrize(
    "days_left, expected",
    [(0, True), (7, True), (8, False)],
)
def test_is_expiring_soon_window(days_left, expected):
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=days_left)))

    assert store.is_expiring_soon() is expected


def test_expired_and_expiring_soon_are_never_both_true():
    storage = FlakyStorage()
    store = _store(storage)
    store.set_subscription(_active_update(NOW + timedelta(days=2)))

    for offset in range(-3, 12):
        moment = NOW + timedelta(days=offset, hours=1)
        view = SubscriptionStore(storage=storage, account_id="acct-1", clock=lambda moment=moment: moment)
        view.set_subscription(_active_update(NOW + timedelta(days=2)))
        assert not (view.is_expired() and view.is_expiring_soon())


def test_period_ended_hours_ago_is_expired_not_expiring():
    store = _store()
    store.set_subscription(_active_update(NOW - timedelta(hours=12)))

    assert store.is_expired() is True
    assert store.is_expiring_soon() is False
    summary = store.get_summary()
    assert summary.display_status == "Subscription Expired"
    assert summary.is_expiring_soon is False


def test_summary_for_free_plan():
    summary = _store().get_summary()

    assert summary.display_status == "Free Plan"
    assert summary.show_upgrade is True
    assert summary.is_expired is False


def test_summary_for_active_plan_expiring_soon():
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=1)))

    summary = store.get_summary()

    assert summary.display_status == "Premium Active"
    assert summary.is_expiring_soon is True
    assert summary.message == "Your subscription expires in 1 day"
    assert summary.show_upgrade is False
    assert summary.next_billing_date == NOW + timedelta(days=1)


def test_summary_for_past_due_plan():
    store = _store()
    store.set_subscription(_active_update(NOW + timedelta(days=30)))
    store.update_subscription_status(SubscriptionStatus.PAST_DUE)

    summary = store.get_summary()

    assert summary.status == "past_due"
    assert summary.display_status == "Payment Past Due"
    assert summary.show_upgrade is True


def test_summary_does_not_write():
    storage = FlakyStorage()
    store = _store(storage)
    store.set_subscription(_active_update(NOW + timedelta(days=5)))
    before = storage.get(KEY)

    store.get_summary()
    store.get_applicable_pricing()

    assert storage.get(KEY) == before


def test_sync_subscription_clears_stale_record():
    storage = FlakyStorage()
    moment = {"now": NOW}
    store = SubscriptionStore(storage=storage, account_id="acct-1", clock=lambda: moment["now"])
    store.initialize()
    store.set_subscription(_active_update(NOW + timedelta(days=1)))

    moment["now"] = NOW + timedelta(days=2)
    assert store.sync_subscription() is True

    assert store.status == SubscriptionStatus.INACTIVE
    assert store.first_purchase_date == NOW


def test_payment_processing_flags():
    store = _store()

    store.set_payment_processing(True)
    assert store.is_processing_payment is True

    store.set_payment_processing(False, "Card Declined")
    assert store.payment_error == "Card Declined"

    store.clear_payment_error()
    assert store.payment_error is None
