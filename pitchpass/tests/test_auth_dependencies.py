from datetime import timedelta

import pytest
from fastapi import HTTPException

import pitchpass.main as pitchpass_main
from pitchpass import app_context
from pitchpass.app.payments import AccountContext


def test_get_current_user_missing_cookie_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        pitchpass_main.get_current_user(None)

    assert exc_info.value.status_code == 401


def test_get_current_user_invalid_token_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        pitchpass_main.get_current_user("not-a-valid-token")

    assert exc_info.value.status_code == 401


def test_expired_token_does_not_resolve():
    expired_token = pitchpass_main.create_access_token(
        subject="acct-42", expires_delta=timedelta(minutes=-5)
    )

    assert pitchpass_main.resolve_account_from_session_token(expired_token) is None


def test_valid_token_resolves_account():
    token = pitchpass_main.create_access_token(subject="acct-42", email="fan@example.com")

    result = pitchpass_main.get_current_user(token)

    assert result == AccountContext(account_id="acct-42", email="fan@example.com")


def test_routers_resolve_user_through_app_context():
    token = pitchpass_main.create_access_token(subject="acct-43")

    result = app_context.get_current_user(session_token=token)

    assert result.account_id == "acct-43"
    assert result.email is None
