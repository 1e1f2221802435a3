"""
Tests for provider key storage: encryption at rest and env precedence.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select

from seo_campaigns.models import AppSettings
from seo_campaigns.services.provider_keys import (
    KeyCipher,
    get_default_llm_id,
    get_provider_keys,
    mask_key,
    save_provider_keys,
)

FERNET_KEY = Fernet.generate_key().decode()


def _settings(openai_api_key="", anthropic_api_key=""):
    return SimpleNamespace(
        openai_api_key=openai_api_key,
        anthropic_api_key=anthropic_api_key,
        default_llm_id="anthropic:claude-sonnet-4-20250514",
        encryption_key=FERNET_KEY,
        is_production=False,
    )


def test_cipher_round_trip_and_passthrough():
    cipher = KeyCipher(FERNET_KEY)
    sealed = cipher.seal("sk-live-123")
    assert sealed != "sk-live-123"
    assert cipher.open(sealed) == "sk-live-123"
    assert cipher.open("plain-legacy-key") == "plain-legacy-key"
    assert KeyCipher().seal("sk-dev") == "sk-dev"
    assert cipher.seal("") is None


def test_invalid_encryption_key():
    with pytest.raises(RuntimeError, match="Invalid ENCRYPTION_KEY"):
        KeyCipher("not-a-fernet-key")


def test_mask_key():
    assert mask_key(None) == ""
    assert mask_key("short") == "••••••••"
    assert mask_key("sk-abcdefghijklmnop") == "sk-abc•••••mnop"


@pytest.mark.anyio
async def test_saved_keys_are_encrypted_and_env_wins(session_factory):
    cipher = KeyCipher(FERNET_KEY)
    with patch("seo_campaigns.services.provider_keys.get_settings", return_value=_settings(openai_api_key="sk-env")):
        async with session_factory() as db:
            await save_provider_keys(db, "sk-stored", "ant-stored", "openai:gpt-4o", cipher=cipher)
            await db.commit()

        async with session_factory() as db:
            row = (await db.execute(select(AppSettings))).scalar_one()
            keys = await get_provider_keys(db, cipher)
            model_id = await get_default_llm_id(db)

    assert row.anthropic_api_key != "ant-stored"
    assert keys.openai == "sk-env"
    assert keys.openai_source == "env"
    assert keys.anthropic == "ant-stored"
    assert keys.anthropic_source == "settings"
    assert model_id == "openai:gpt-4o"
    assert keys.describe()["anthropic"]["configured"] is True


@pytest.mark.anyio
async def test_no_keys_anywhere(session_factory):
    with patch("seo_campaigns.services.provider_keys.get_settings", return_value=_settings()):
        async with session_factory() as db:
            keys = await get_provider_keys(db)
            model_id = await get_default_llm_id(db)
    assert keys.openai is None and keys.anthropic_source == "none"
    assert model_id == "anthropic:claude-sonnet-4-20250514"
