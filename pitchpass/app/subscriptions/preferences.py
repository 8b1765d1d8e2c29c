"""Persisted content preferences for an account."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .storage import KeyValueStorage, preferences_storage_key

logger = logging.getLogger("subscriptions.preferences")

RECENT_CATEGORY_LIMIT = 10


class FavoriteClub(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(frozen=True)


class NotificationSettings(BaseModel):
    live_match_alerts: bool = True
    news_updates: bool = True
    subscription_reminders: bool = True
    club_news_updates: bool = True

    model_config = ConfigDict(frozen=True)


class ContentInteractions(BaseModel):
    articles_read: int = Field(default=0, ge=0)
    streaming_minutes: int = Field(default=0, ge=0)
    premium_content_accessed: int = Field(default=0, ge=0)
    last_active_date: Optional[datetime] = None
    recent_categories: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class UserPreferences(BaseModel):
    """Content personalization settings stored under the preferences key."""

    favorite_club: Optional[FavoriteClub] = None
    preferred_categories: List[str] = Field(default_factory=list)
    preferred_competitions: List[str] = Field(default_factory=list)
    content_language: str = "en"
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    content_interactions: ContentInteractions = Field(default_factory=ContentInteractions)

    model_config = ConfigDict(frozen=True)

    @property
    def has_selected_club(self) -> bool:
        return self.favorite_club is not None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserPreferencesStore:
    """Persist-then-publish store for :class:`UserPreferences`."""

    storage: KeyValueStorage
    account_id: str
    namespace: str = "pitchpass"
    clock: Callable[[], datetime] = _utc_now

    is_ready: bool = field(default=False, init=False)
    _preferences: UserPreferences = field(default_factory=UserPreferences, init=False, repr=False)

    @property
    def storage_key(self) -> str:
        return preferences_storage_key(self.namespace, self.account_id)

    @property
    def preferences(self) -> UserPreferences:
        return self._preferences

    def initialize(self) -> None:
        try:
            raw = self.storage.get(self.storage_key)
        except Exception:
            logger.exception("Failed to load preferences for account %s", self.account_id)
            self.is_ready = True
            return

        if raw is not None:
            try:
                self._preferences = UserPreferences.model_validate_json(raw)
            except ValidationError:
                logger.warning("Ignoring unreadable preferences for account %s", self.account_id)
        self.is_ready = True

    def set_favorite_club(self, club: Optional[FavoriteClub]) -> bool:
        return self._replace(self._preferences.model_copy(update={"favorite_club": club}))

    def update_preferences(
        self,
        *,
        preferred_categories: Optional[List[str]] = None,
        preferred_competitions: Optional[List[str]] = None,
        content_language: Optional[str] = None,
    ) -> bool:
        changes: Dict[str, object] = {}
        if preferred_categories is not None:
            changes["preferred_categories"] = list(preferred_categories)
        if preferred_competitions is not None:
            changes["preferred_competitions"] = list(preferred_competitions)
        if content_language is not None:
            changes["content_language"] = content_language
        return self._replace(self._preferences.model_copy(update=changes))

    def update_notification_settings(self, **settings: bool) -> bool:
        merged = self._preferences.notification_settings.model_copy(update=settings)
        return self._replace(self._preferences.model_copy(update={"notification_settings": merged}))

    def update_content_interactions(
        self,
        *,
        category: Optional[str] = None,
        articles_read: Optional[int] = None,
        streaming_minutes: Optional[int] = None,
        premium_content_accessed: Optional[int] = None,
    ) -> bool:
        current = self._preferences.content_interactions
        changes: Dict[str, object] = {"last_active_date": self.clock()}
        if articles_read is not None:
            changes["articles_read"] = articles_read
        if streaming_minutes is not None:
            changes["streaming_minutes"] = streaming_minutes
        if premium_content_accessed is not None:
            changes["premium_content_accessed"] = premium_content_accessed
        if category and category not in current.recent_categories:
            recent = [category, *current.recent_categories]
            changes["recent_categories"] = recent[:RECENT_CATEGORY_LIMIT]

        interactions = current.model_copy(update=changes)
        return self._replace(self._preferences.model_copy(update={"content_interactions": interactions}))

    def get_personalized_filters(self) -> Dict[str, List[str]]:
        prefs = self._preferences
        filters: Dict[str, List[str]] = {}
        if prefs.favorite_club is not None:
            filters["clubs"] = [prefs.favorite_club.id]
        if prefs.preferred_categories:
            filters["categories"] = list(prefs.preferred_categories)
        if prefs.preferred_competitions:
            filters["competitions"] = list(prefs.preferred_competitions)
        return filters

    def clear_preferences(self) -> bool:
        try:
            self.storage.delete(self.storage_key)
        except Exception:
            logger.exception("Failed to clear preferences for account %s", self.account_id)
            return False
        self._preferences = UserPreferences()
        return True

    def _replace(self, preferences: UserPreferences) -> bool:
        try:
            self.storage.set(self.storage_key, preferences.model_dump_json())
        except Exception:
            logger.exception("Failed to persist preferences for account %s", self.account_id)
            return False
        self._preferences = preferences
        return True


__all__ = [
    "ContentInteractions",
    "FavoriteClub",
    "NotificationSettings",
    "UserPreferences",
    "UserPreferencesStore",
]
