"""
SEO Campaign Engine — Database Models
Campaign workflow state, the search results and brands it reads, the articles it writes,
and the append-only token usage ledger.
"""

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    String, Text, Float, Integer, DateTime, Boolean,
    JSON, ForeignKey, Index, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from seo_campaigns.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class CampaignStep(str, enum.Enum):
    """Lifecycle of a campaign. Forward-only; there is no failed state."""
    FORM_DATA_SAVED = "form_data_saved"
    KEYWORD_RESEARCH = "keyword_research"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STEP_ORDER.index(self)


_STEP_ORDER = [CampaignStep.FORM_DATA_SAVED, CampaignStep.KEYWORD_RESEARCH, CampaignStep.COMPLETED]


class CampaignStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ArticleStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


# ══════════════════════════════════════════════════════════════════════
#  BRANDS — Owner of campaigns (name used for article context)
# ══════════════════════════════════════════════════════════════════════

class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    website_url: Mapped[str] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    campaigns: Mapped[list["SeoCampaign"]] = relationship("SeoCampaign", back_populates="brand")

    __table_args__ = (
        Index("ix_brands_user_id", "user_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  SEO CAMPAIGNS — One batch content-generation engagement
# ══════════════════════════════════════════════════════════════════════

class SeoCampaign(Base):
    """
    Configuration columns are written once by start_workflow.
    Research columns (organic_keywords, style_analysis) are written only by run_workflow.
    """
    __tablename__ = "seo_campaigns"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    brand_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("brands.id", ondelete="SET NULL"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=True)

    # Configuration
    website_url: Mapped[str] = mapped_column(String(1024), nullable=True)
    business_description: Mapped[str] = mapped_column(Text, nullable=False)
    number_of_articles: Mapped[int] = mapped_column(Integer, nullable=False)
    article_length: Mapped[str] = mapped_column(String(64), nullable=True)
    article_type: Mapped[str] = mapped_column(String(64), nullable=True)
    language: Mapped[str] = mapped_column(String(64), nullable=True)
    target_country: Mapped[str] = mapped_column(String(128), nullable=True)

    # Derived research artifacts
    extracted_keywords: Mapped[list] = mapped_column(JSON, default=list)
    generated_search_keywords: Mapped[list] = mapped_column(JSON, default=list)
    formatted_search_location: Mapped[str] = mapped_column(String(8), nullable=True)
    organic_keywords: Mapped[list] = mapped_column(JSON, default=list)
    # {knowledge_base, competitorData, article_outlines[], suggested_titles[], contentPillars[], targetAudience}
    style_analysis: Mapped[dict] = mapped_column(JSON, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), default=CampaignStatus.IN_PROGRESS.value)
    current_step: Mapped[str] = mapped_column(String(32), default=CampaignStep.FORM_DATA_SAVED.value)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    lock_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    brand: Mapped["Brand"] = relationship("Brand", back_populates="campaigns")
    articles: Mapped[list["Article"]] = relationship("Article", back_populates="campaign", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_seo_campaigns_user_id", "user_id"),
        Index("ix_seo_campaigns_brand_id", "brand_id"),
        Index("ix_seo_campaigns_current_step", "current_step"),
    )

    @property
    def step(self) -> CampaignStep:
        return CampaignStep(self.current_step)

    @property
    def article_outlines(self) -> list[dict]:
        return list((self.style_analysis or {}).get("article_outlines") or [])

    def to_dict(self) -> dict:
        analysis = self.style_analysis or {}
        return {
            "id": str(self.id),
            "userId": str(self.user_id),
            "brandId": str(self.brand_id) if self.brand_id else None,
            "name": self.name,
            "websiteUrl": self.website_url,
            "businessDescription": self.business_description,
            "numberOfArticles": self.number_of_articles,
            "articleLength": self.article_length,
            "articleType": self.article_type,
            "language": self.language,
            "targetCountry": self.target_country,
            "extractedKeywords": self.extracted_keywords or [],
            "generatedSearchKeywords": self.generated_search_keywords or [],
            "formattedSearchLocation": self.formatted_search_location,
            "organicKeywords": self.organic_keywords or [],
            "suggestedTitles": analysis.get("suggested_titles") or [],
            "contentPillars": analysis.get("contentPillars") or [],
            "targetAudience": analysis.get("targetAudience"),
            "status": self.status,
            "currentStep": self.current_step,
            "progress": self.progress,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


# ══════════════════════════════════════════════════════════════════════
#  GOOGLE SEARCH RESULTS — Written by the search scraper, read here
# ══════════════════════════════════════════════════════════════════════

class GoogleSearchResult(Base):
    __tablename__ = "google_search_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    search_run_id: Mapped[str] = mapped_column(String(255), nullable=True)
    search_session_id: Mapped[str] = mapped_column(String(255), nullable=True)
    keyword: Mapped[str] = mapped_column(String(512), nullable=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=True)
    domain: Mapped[str] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=True)
    is_organic: Mapped[bool] = mapped_column(Boolean, nullable=True)
    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_google_search_results_user_id", "user_id"),
        Index("ix_google_search_results_search_run_id", "search_run_id"),
        Index("ix_google_search_results_scraped_at", "scraped_at"),
    )


# ══════════════════════════════════════════════════════════════════════
#  ARTICLES — Output of the generation stage
# ══════════════════════════════════════════════════════════════════════

class Article(Base):
    __tablename__ = "articles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("seo_campaigns.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    brand_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    primary_keyword: Mapped[str] = mapped_column(String(255), nullable=True)
    keywords: Mapped[list] = mapped_column(JSON, default=list)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    meta_description: Mapped[str] = mapped_column(String(255), nullable=True)
    featured_image_url: Mapped[str] = mapped_column(Text, nullable=True)
    word_count: Mapped[int] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ArticleStatus.DRAFT.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    campaign: Mapped["SeoCampaign"] = relationship("SeoCampaign", back_populates="articles")

    __table_args__ = (
        Index("ix_articles_campaign_id", "campaign_id"),
        Index("ix_articles_user_id", "user_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  API TOKEN USAGE — Append-only ledger, one row per generation attempt
# ══════════════════════════════════════════════════════════════════════

class ApiTokenUsage(Base):
    __tablename__ = "api_token_usage"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    brand_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    service_name: Mapped[str] = mapped_column(String(64), nullable=False)
    model_name: Mapped[str] = mapped_column(String(128), nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0)
    request_data: Mapped[dict] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_api_token_usage_user_id", "user_id"),
        Index("ix_api_token_usage_created_at", "created_at"),
    )


# ══════════════════════════════════════════════════════════════════════
#  APP SETTINGS — Stored provider API keys (env vars take precedence)
# ══════════════════════════════════════════════════════════════════════

class AppSettings(Base):
    """Application-wide settings. Single row, key-value style."""
    __tablename__ = "app_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # default_llm_id: "openai:gpt-4o" or "anthropic:claude-sonnet-4-20250514"
    default_llm_id: Mapped[str] = mapped_column(String(128), nullable=True)
    # Encrypted API keys (stored from Settings UI; env vars take precedence if set)
    openai_api_key: Mapped[str] = mapped_column(Text, nullable=True)
    anthropic_api_key: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
