"""
Tests for caller resolution: dev fallback, JWT subject, API key with X-User-Id.
"""

import uuid
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from seo_campaigns.auth import get_current_user_id
from seo_campaigns.errors import AuthenticationError, ValidationError
from seo_campaigns.services.auth_service import issue_caller_token, read_caller_token

USER = "11111111-2222-3333-4444-555555555555"


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _settings(api_key="", environment="development"):
    return SimpleNamespace(
        api_key=api_key,
        is_production=environment == "production",
        dev_user_id="00000000-0000-0000-0000-000000000001",
    )


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.anyio
async def test_dev_mode_uses_dev_user():
    with patch("seo_campaigns.auth.get_settings", return_value=_settings()):
        user_id = await get_current_user_id(credentials=None, x_user_id=None)
    assert user_id == uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.mark.anyio
async def test_production_without_key_is_rejected():
    with patch("seo_campaigns.auth.get_settings", return_value=_settings(environment="production")):
        with pytest.raises(AuthenticationError, match="API_KEY"):
            await get_current_user_id(credentials=None, x_user_id=None)


@pytest.mark.anyio
async def test_jwt_subject_is_caller():
    token = issue_caller_token(USER, email="writer@example.com")
    with patch("seo_campaigns.auth.get_settings", return_value=_settings(api_key="k")):
        user_id = await get_current_user_id(credentials=_bearer(token), x_user_id=None)
    assert user_id == uuid.UUID(USER)


@pytest.mark.anyio
async def test_api_key_requires_user_header():
    with patch("seo_campaigns.auth.get_settings", return_value=_settings(api_key="k")):
        assert await get_current_user_id(credentials=_bearer("k"), x_user_id=USER) == uuid.UUID(USER)
        with pytest.raises(AuthenticationError, match="X-User-Id"):
            await get_current_user_id(credentials=_bearer("k"), x_user_id=None)
        with pytest.raises(ValidationError):
            await get_current_user_id(credentials=_bearer("k"), x_user_id="bob")


@pytest.mark.anyio
async def test_bad_token_and_missing_header():
    with patch("seo_campaigns.auth.get_settings", return_value=_settings(api_key="k")):
        with pytest.raises(AuthenticationError, match="Invalid or expired"):
            await get_current_user_id(credentials=_bearer("wrong"), x_user_id=USER)
        with pytest.raises(AuthenticationError, match="Missing authorization"):
            await get_current_user_id(credentials=None, x_user_id=USER)


def test_caller_token_claims():
    brand = uuid.uuid4()
    claims = read_caller_token(issue_caller_token(USER, email="writer@example.com", brand_id=brand))
    assert claims.user_id == uuid.UUID(USER)
    assert claims.email == "writer@example.com"
    assert claims.brand_id == brand


def test_expired_or_malformed_tokens_are_rejected():
    assert read_caller_token(issue_caller_token(USER, ttl=timedelta(seconds=-1))) is None
    assert read_caller_token(issue_caller_token("not-a-uuid")) is None
    assert read_caller_token("garbage") is None
