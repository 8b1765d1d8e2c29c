"""Subscription lifecycle state and account preference persistence."""

from .models import (
    ALLOWED_STATUS_TRANSITIONS,
    AccessTier,
    InvalidStatusTransition,
    SubscriptionRecord,
    SubscriptionStatus,
    SubscriptionSummary,
    SubscriptionUpdate,
)
from .preferences import (
    ContentInteractions,
    FavoriteClub,
    NotificationSettings,
    UserPreferences,
    UserPreferencesStore,
)
from .storage import (
    InMemoryKeyValueStorage,
    KeyValueStorage,
    PostgresKeyValueStorage,
    preferences_storage_key,
    subscription_storage_key,
)
from .store import SubscriptionStore

__all__ = [
    "ALLOWED_STATUS_TRANSITIONS",
    "AccessTier",
    "ContentInteractions",
    "FavoriteClub",
    "InMemoryKeyValueStorage",
    "InvalidStatusTransition",
    "KeyValueStorage",
    "NotificationSettings",
    "PostgresKeyValueStorage",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "SubscriptionStore",
    "SubscriptionSummary",
    "SubscriptionUpdate",
    "UserPreferences",
    "UserPreferencesStore",
    "preferences_storage_key",
    "subscription_storage_key",
]
