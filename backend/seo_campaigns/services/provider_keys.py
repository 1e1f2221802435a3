"""
Provider Keys — OpenAI/Anthropic credentials for content synthesis.

Environment variables win; otherwise keys saved in the single app_settings row are used.
Saved keys are Fernet-encrypted with ENCRYPTION_KEY. Without a key (development only)
they are stored as entered.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seo_campaigns.config import get_settings
from seo_campaigns.models import AppSettings

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "anthropic")


class KeyCipher:
    """Seals and opens stored provider keys. A cipher without a Fernet key is a passthrough."""

    def __init__(self, encryption_key: str = ""):
        self._fernet = None
        if encryption_key:
            try:
                self._fernet = Fernet(encryption_key.encode())
            except ValueError as exc:
                raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc

    @classmethod
    def from_settings(cls) -> "KeyCipher":
        settings = get_settings()
        if not settings.encryption_key:
            if settings.is_production:
                raise RuntimeError("ENCRYPTION_KEY must be set in production.")
            logger.warning("ENCRYPTION_KEY not set; provider keys in app_settings are plaintext.")
        return cls(settings.encryption_key)

    @property
    def encrypting(self) -> bool:
        return self._fernet is not None

    def seal(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if self._fernet is None:
            return value
        return self._fernet.encrypt(value.encode()).decode()

    def open(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if self._fernet is None:
            return value
        try:
            return self._fernet.decrypt(value.encode()).decode()
        except InvalidToken:
            # Saved before ENCRYPTION_KEY was configured
            logger.warning("Stored provider key is not Fernet ciphertext; using it as-is.")
            return value


def mask_key(key: Optional[str]) -> str:
    if not key:
        return ""
    if len(key) <= 12:
        return "••••••••"
    return key[:6] + "•••••" + key[-4:]


@dataclass
class ProviderKeys:
    openai: Optional[str] = None
    anthropic: Optional[str] = None
    openai_source: str = "none"  # env | settings | none
    anthropic_source: str = "none"

    def describe(self) -> dict:
        return {
            "openai": {"configured": bool(self.openai), "source": self.openai_source, "key": mask_key(self.openai)},
            "anthropic": {"configured": bool(self.anthropic), "source": self.anthropic_source, "key": mask_key(self.anthropic)},
        }


async def _settings_row(db: AsyncSession) -> Optional[AppSettings]:
    result = await db.execute(select(AppSettings).limit(1))
    return result.scalar_one_or_none()


async def get_provider_keys(db: AsyncSession, cipher: Optional[KeyCipher] = None) -> ProviderKeys:
    settings = get_settings()
    row = await _settings_row(db)
    keys = ProviderKeys()
    for provider in PROVIDERS:
        env_value = getattr(settings, f"{provider}_api_key")
        stored = getattr(row, f"{provider}_api_key") if row else None
        if env_value:
            value, source = env_value, "env"
        elif stored:
            value, source = (cipher or KeyCipher.from_settings()).open(stored), "settings"
        else:
            value, source = None, "none"
        setattr(keys, provider, value)
        setattr(keys, f"{provider}_source", source)
    return keys


async def get_default_llm_id(db: AsyncSession) -> str:
    row = await _settings_row(db)
    return (row.default_llm_id if row else None) or get_settings().default_llm_id


async def save_provider_keys(
    db: AsyncSession,
    openai_api_key: Optional[str] = None,
    anthropic_api_key: Optional[str] = None,
    default_llm_id: Optional[str] = None,
    cipher: Optional[KeyCipher] = None,
) -> AppSettings:
    """
    Upsert the app_settings row. None leaves a field unchanged; "" clears it.
    Caller commits.
    """
    cipher = cipher or KeyCipher.from_settings()
    row = await _settings_row(db)
    if row is None:
        row = AppSettings()
        db.add(row)
    if openai_api_key is not None:
        row.openai_api_key = cipher.seal(openai_api_key.strip())
    if anthropic_api_key is not None:
        row.anthropic_api_key = cipher.seal(anthropic_api_key.strip())
    if default_llm_id is not None:
        row.default_llm_id = default_llm_id.strip() or None
    await db.flush()
    logger.info(f"Saved provider keys (encrypted={cipher.encrypting})")
    return row
