import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    database_url: str = "postgresql+asyncpg://localhost/seo_campaigns"
    database_ssl: str = "disable"  # disable | require | verify-full

    @model_validator(mode="before")
    @classmethod
    def _fix_database_url_for_asyncpg(cls, values: dict) -> dict:
        """Hosted Postgres gives postgresql:// — we need postgresql+asyncpg:// for asyncpg."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            values["database_url"] = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return values
    secret_key: str = "change-me-in-production"
    api_key: str = ""  # Required in production; in dev, empty = auth disabled
    dev_user_id: str = "00000000-0000-0000-0000-000000000001"  # Acting user when auth is disabled
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    encryption_key: str = ""

    # Content synthesis providers
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    default_llm_id: str = "anthropic:claude-sonnet-4-20250514"
    meta_llm_id: str = "openai:gpt-4o-mini"  # cheap model for meta descriptions
    image_model: str = "gpt-image-1"
    featured_image: str = "none"  # none | ai_generation

    # Research stage
    research_max_attempts: int = 3
    research_retry_delay_seconds: float = 2.0
    max_source_articles: int = 5
    recent_search_results_limit: int = 200
    website_excerpt_chars: int = 2000
    article_excerpt_chars: int = 7000
    prompt_excerpt_chars: int = 1500
    http_timeout_seconds: float = 30.0

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "SECRET_KEY must be set to a secure value in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.api_key:
                raise ValueError(
                    "API_KEY must be set in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.encryption_key:
                raise ValueError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
                )
            if not self.database_url or "localhost" in self.database_url:
                logger.warning("DATABASE_URL appears to point at localhost in production.")
        if self.featured_image not in ("none", "ai_generation"):
            raise ValueError("FEATURED_IMAGE must be 'none' or 'ai_generation'.")
        if self.database_ssl not in ("disable", "require", "verify-full"):
            raise ValueError("DATABASE_SSL must be 'disable', 'require' or 'verify-full'.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or ["http://localhost:5173", "http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
