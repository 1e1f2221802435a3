"""
Campaign Store — persistence for campaigns, the search results they read and the articles they write.

Every write opens its own session and commits or rolls back as a unit, so an action
that fails midway leaves the stored campaign exactly as it was. Campaign updates are
guarded by an optimistic `lock_version`: a writer holding a stale version loses.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seo_campaigns.errors import CampaignNotFoundError, InvalidTransitionError, WorkflowInProgressError
from seo_campaigns.models import (
    Article,
    Brand,
    CampaignStatus,
    CampaignStep,
    GoogleSearchResult,
    SeoCampaign,
)
from seo_campaigns.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CampaignConfig:
    """Configuration captured once by start_workflow."""
    business_description: str
    number_of_articles: int
    website_url: str = ""
    article_length: str = ""
    article_type: str = ""
    language: str = "English"
    target_country: str = ""
    name: str = ""
    brand_id: Optional[uuid.UUID] = None


class CampaignStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Campaigns ─────────────────────────────────────────────────────

    async def create_campaign(
        self,
        user_id: uuid.UUID,
        config: CampaignConfig,
        search_keywords: list[str],
        search_location: str,
        progress: int,
    ) -> SeoCampaign:
        async with self._session_factory() as session:
            campaign = SeoCampaign(
                user_id=user_id,
                brand_id=config.brand_id,
                name=config.name or f"SEO campaign: {config.business_description[:60]}",
                website_url=config.website_url,
                business_description=config.business_description,
                number_of_articles=config.number_of_articles,
                article_length=config.article_length,
                article_type=config.article_type,
                language=config.language,
                target_country=config.target_country,
                extracted_keywords=list(search_keywords),
                generated_search_keywords=list(search_keywords),
                formatted_search_location=search_location,
                organic_keywords=[],
                status=CampaignStatus.IN_PROGRESS.value,
                current_step=CampaignStep.FORM_DATA_SAVED.value,
                progress=progress,
                lock_version=0,
            )
            session.add(campaign)
            await session.commit()
            logger.info(f"Created campaign {campaign.id} for user {user_id}")
            return campaign

    async def get_campaign(self, campaign_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> SeoCampaign:
        """Load a campaign, scoped to its owner when `user_id` is given."""
        async with self._session_factory() as session:
            query = select(SeoCampaign).where(SeoCampaign.id == campaign_id)
            if user_id is not None:
                query = query.where(SeoCampaign.user_id == user_id)
            result = await session.execute(query)
            campaign = result.scalar_one_or_none()
            if campaign is None:
                raise CampaignNotFoundError(campaign_id)
            return campaign

    async def transition(
        self,
        campaign_id: uuid.UUID,
        step: CampaignStep,
        progress: int,
        expected_version: Optional[int] = None,
        status: Optional[CampaignStatus] = None,
        **fields,
    ) -> SeoCampaign:
        """
        Move a campaign to `step` and write `fields` in one transaction.
        Steps never go backwards and stored progress never decreases.
        """
        async with self._session_factory() as session:
            async with session.begin():
                campaign = await session.get(SeoCampaign, campaign_id)
                if campaign is None:
                    raise CampaignNotFoundError(campaign_id)
                version = campaign.lock_version
                if expected_version is not None and version != expected_version:
                    raise WorkflowInProgressError(
                        f"Campaign {campaign_id} was modified by another run (version {version}, expected {expected_version})"
                    )
                current = campaign.step
                if step.rank < current.rank:
                    raise InvalidTransitionError(
                        f"Cannot move campaign {campaign_id} from {current.value} back to {step.value}"
                    )

                values = dict(fields)
                values.update(
                    current_step=step.value,
                    progress=max(campaign.progress or 0, progress),
                    lock_version=version + 1,
                    updated_at=utcnow(),
                )
                if status is not None:
                    values["status"] = status.value

                result = await session.execute(
                    update(SeoCampaign)
                    .where(SeoCampaign.id == campaign_id, SeoCampaign.lock_version == version)
                    .values(**values)
                )
                if result.rowcount == 0:
                    raise WorkflowInProgressError(f"Campaign {campaign_id} was modified by another run")

        logger.info(f"Campaign {campaign_id}: {current.value} -> {step.value} ({values['progress']}%)")
        return await self.get_campaign(campaign_id)

    async def save_research(
        self,
        campaign_id: uuid.UUID,
        organic_keywords: list[str],
        style_analysis: dict,
        progress: int,
        expected_version: Optional[int] = None,
    ) -> SeoCampaign:
        return await self.transition(
            campaign_id,
            CampaignStep.KEYWORD_RESEARCH,
            progress,
            expected_version=expected_version,
            status=CampaignStatus.IN_PROGRESS,
            organic_keywords=organic_keywords,
            style_analysis=style_analysis,
        )

    # ── Search results (written by the search scraper) ────────────────

    async def get_search_results(self, user_id: uuid.UUID, search_run_id: str) -> list[GoogleSearchResult]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GoogleSearchResult)
                .where(
                    GoogleSearchResult.user_id == user_id,
                    or_(
                        GoogleSearchResult.search_run_id == search_run_id,
                        GoogleSearchResult.search_session_id == search_run_id,
                    ),
                )
                .order_by(GoogleSearchResult.position.asc())
            )
            return list(result.scalars().all())

    async def get_recent_search_results(self, user_id: uuid.UUID, limit: int = 200) -> list[GoogleSearchResult]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GoogleSearchResult)
                .where(GoogleSearchResult.user_id == user_id)
                .order_by(GoogleSearchResult.scraped_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ── Brands & articles ─────────────────────────────────────────────

    async def get_brand_name(self, brand_id: Optional[uuid.UUID]) -> Optional[str]:
        if brand_id is None:
            return None
        async with self._session_factory() as session:
            brand = await session.get(Brand, brand_id)
            return brand.name if brand else None

    async def save_article(
        self,
        campaign: SeoCampaign,
        title: str,
        content: str,
        primary_keyword: str = "",
        keywords: Optional[list[str]] = None,
        meta_description: Optional[str] = None,
        featured_image_url: Optional[str] = None,
    ) -> Article:
        async with self._session_factory() as session:
            article = Article(
                campaign_id=campaign.id,
                user_id=campaign.user_id,
                brand_id=campaign.brand_id,
                title=title,
                primary_keyword=primary_keyword,
                keywords=list(keywords or []),
                content=content,
                meta_description=meta_description,
                featured_image_url=featured_image_url,
                word_count=len(content.split()),
            )
            session.add(article)
            await session.commit()
            return article

    async def list_articles(self, campaign_id: uuid.UUID) -> list[Article]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Article).where(Article.campaign_id == campaign_id).order_by(Article.created_at)
            )
            return list(result.scalars().all())
