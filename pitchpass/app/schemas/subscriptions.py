"""API schemas for subscription, pricing and content preference endpoints."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..payments import SubscriptionStatusEvent
from ..pricing import SubscriptionPlan
from ..subscriptions import FavoriteClub


class CheckoutRequest(BaseModel):
    plan: SubscriptionPlan

    model_config = ConfigDict(populate_by_name=True)


class CancelCheckoutResponse(BaseModel):
    cancelled: bool

    model_config = ConfigDict(populate_by_name=True)


class CancelSubscriptionRequest(BaseModel):
    reason: str = Field(default="user_request", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ReactivateSubscriptionResponse(BaseModel):
    reactivated: bool

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionEventPayload(SubscriptionStatusEvent):
    """Lifecycle notification addressed to one account."""

    account_id: str = Field(alias="accountId", min_length=1)


class QuoteRequest(BaseModel):
    base_price_per_hour: int = Field(alias="basePricePerHour", ge=0)
    duration_hours: int = Field(alias="durationHours", ge=0)
    is_first_booking: bool = Field(alias="isFirstBooking", default=False)

    model_config = ConfigDict(populate_by_name=True)


class NotificationSettingsUpdate(BaseModel):
    live_match_alerts: Optional[bool] = Field(alias="liveMatchAlerts", default=None)
    news_updates: Optional[bool] = Field(alias="newsUpdates", default=None)
    subscription_reminders: Optional[bool] = Field(alias="subscriptionReminders", default=None)
    club_news_updates: Optional[bool] = Field(alias="clubNewsUpdates", default=None)

    model_config = ConfigDict(populate_by_name=True)


class ContentPreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value.

    ``favoriteClub`` sent as ``null`` clears the selected club.
    """

    favorite_club: Optional[FavoriteClub] = Field(alias="favoriteClub", default=None)
    preferred_categories: Optional[List[str]] = Field(alias="preferredCategories", default=None)
    preferred_competitions: Optional[List[str]] = Field(alias="preferredCompetitions", default=None)
    content_language: Optional[str] = Field(alias="contentLanguage", default=None, min_length=2)
    notification_settings: Optional[NotificationSettingsUpdate] = Field(
        alias="notificationSettings", default=None
    )

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "CancelCheckoutResponse",
    "CancelSubscriptionRequest",
    "CheckoutRequest",
    "ContentPreferencesUpdate",
    "NotificationSettingsUpdate",
    "QuoteRequest",
    "ReactivateSubscriptionResponse",
    "SubscriptionEventPayload",
]
