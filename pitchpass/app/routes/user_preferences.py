"""Routes for managing user-specific content preferences."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..payments import AccountContext
from ..schemas.subscriptions import ContentPreferencesUpdate
from ..subscriptions import UserPreferences

from .subscriptions import _get_current_user

router = APIRouter(prefix="/api/users/me", tags=["content-preferences"])


@router.get("/content_prefs", response_model=UserPreferences)
def get_content_preferences(
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> UserPreferences:
    """Return the content preferences for the authenticated user."""
    from ..services import subscriptions as subscriptions_service

    return subscriptions_service.get_preferences_store(current_user.account_id).preferences


@router.put("/content_prefs", response_model=UserPreferences)
def update_content_preferences(
    payload: ContentPreferencesUpdate,
    *,
    current_user: AccountContext = Depends(_get_current_user),
) -> UserPreferences:
    """Apply a partial update to the content preferences of the authenticated user."""
    from ..services import subscriptions as subscriptions_service

    store = subscriptions_service.get_preferences_store(current_user.account_id)
    saved = True
    if "favorite_club" in payload.model_fields_set:
        saved = store.set_favorite_club(payload.favorite_club) and saved
    if (
        payload.preferred_categories is not None
        or payload.preferred_competitions is not None
        or payload.content_language is not None
    ):
        saved = store.update_preferences(
            preferred_categories=payload.preferred_categories,
            preferred_competitions=payload.preferred_competitions,
            content_language=payload.content_language,
        ) and saved
    if payload.notification_settings is not None:
        settings = payload.notification_settings.model_dump(exclude_none=True)
        if settings:
            saved = store.update_notification_settings(**settings) and saved

    if not saved:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Preferences could not be saved",
        )
    return store.preferences


__all__ = [
    "router",
    "get_content_preferences",
    "update_content_preferences",
]
