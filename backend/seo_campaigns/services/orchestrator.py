"""
Campaign Orchestrator — the state machine behind the SEO campaign workflow.

    start_workflow     validate config, seed keywords, create campaign    -> form_data_saved (20%)
    run_workflow       website, search results, sources, scrape, plan    -> keyword_research (60%)
    generate_articles  one article per selected outline title            -> completed (100%) if any succeeded

Each action runs to completion before returning. A failed action leaves the stored
campaign as it was, so the caller retries the same action. Only one action per
campaign may run at a time in this process; a second one fails fast.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seo_campaigns.config import Settings, get_settings
from seo_campaigns.errors import (
    InvalidTransitionError,
    TransientServiceError,
    ValidationError,
    WorkflowError,
    WorkflowInProgressError,
)
from seo_campaigns.models import CampaignStatus, CampaignStep, SeoCampaign
from seo_campaigns.services.campaign_store import CampaignConfig, CampaignStore
from seo_campaigns.services.content_synthesis import (
    ArticleRequest,
    ContentSynthesisClient,
    PlanRequest,
    create_content_synthesis_client,
    fallback_meta_description,
)
from seo_campaigns.services.planning import (
    ContentPlan,
    ScrapedArticle,
    Topic,
    build_fallback_plan,
    format_search_location,
    generate_search_keywords,
    map_article_length_to_min_words,
    normalize_plan,
)
from seo_campaigns.services.provider_keys import get_default_llm_id, get_provider_keys
from seo_campaigns.services.retry import RetryExecutor
from seo_campaigns.services.source_selector import SearchCandidate, select_top_articles
from seo_campaigns.services.stage_tracker import StageTracker
from seo_campaigns.services.usage_service import TokenUsage, UsageLedger
from seo_campaigns.services.web_research import WebResearchClient
from seo_campaigns.utils import parse_uuid

logger = logging.getLogger(__name__)

PROGRESS_FORM_SAVED = 20
PROGRESS_RESEARCHED = 60
PROGRESS_COMPLETED = 100

RESEARCH_STEPS = [
    ("website_analysis", "Website analysis", "Read the campaign website"),
    ("search_results", "Search results", "Load search results for the seed keywords"),
    ("source_selection", "Source selection", "Pick the top competitor articles"),
    ("article_scraping", "Article scraping", "Fetch competitor article text"),
    ("content_planning", "Content planning", "Synthesize topics and keywords"),
    ("save_research", "Save research", "Store the plan on the campaign"),
]

SynthesisFactory = Callable[[Optional[str]], Awaitable[ContentSynthesisClient]]


def stored_key_synthesis_factory(session_factory: async_sessionmaker[AsyncSession]) -> SynthesisFactory:
    """Build clients with env keys first, then keys stored in app_settings."""
    async def factory(model_id: Optional[str] = None) -> ContentSynthesisClient:
        async with session_factory() as db:
            keys = await get_provider_keys(db)
            if not model_id:
                model_id = await get_default_llm_id(db)
        return create_content_synthesis_client(model_id, keys.openai, keys.anthropic)
    return factory


def _require_int(value: Any, field_name: str, minimum: int = 1) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number")
    if number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}")
    return number


def _require_flag(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{field_name} must be true or false")


def parse_article_style(options: dict) -> dict:
    """ArticleRequest style fields from generate_articles options. Bad values are rejected up front."""
    return {
        "tone": str(options.get("tone") or "clear, authoritative, human"),
        "include_intro": _require_flag(options.get("includeIntro", True), "includeIntro"),
        "include_conclusion": _require_flag(options.get("includeConclusion", True), "includeConclusion"),
        "include_faq": _require_flag(options.get("includeFaq", True), "includeFaq"),
        "internal_links": _require_int(options.get("internalLinks", 2), "internalLinks", minimum=0),
        "external_links": _require_int(options.get("externalLinks", 1), "externalLinks", minimum=0),
    }


def parse_campaign_config(payload: dict) -> CampaignConfig:
    """Read start_workflow fields (camelCase, as sent by the web app)."""
    description = str(payload.get("businessDescription") or "").strip()
    if not description:
        raise ValidationError("businessDescription is required")
    if payload.get("numberOfArticles") in (None, ""):
        raise ValidationError("numberOfArticles is required")
    brand_id = payload.get("brandId")
    return CampaignConfig(
        business_description=description,
        number_of_articles=_require_int(payload.get("numberOfArticles"), "numberOfArticles"),
        website_url=str(payload.get("websiteUrl") or "").strip(),
        article_length=str(payload.get("articleLength") or ""),
        article_type=str(payload.get("articleType") or ""),
        language=str(payload.get("language") or "English"),
        target_country=str(payload.get("targetCountry") or ""),
        name=str(payload.get("campaignName") or payload.get("name") or ""),
        brand_id=parse_uuid(brand_id, "brandId") if brand_id else None,
    )


class CampaignOrchestrator:
    def __init__(
        self,
        store: CampaignStore,
        ledger: UsageLedger,
        synthesis_factory: SynthesisFactory,
        research_client: Optional[WebResearchClient] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.ledger = ledger
        self.settings = settings or get_settings()
        self._synthesis_factory = synthesis_factory
        self._research = research_client or WebResearchClient()
        self._sleep = sleep
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    def _retry(self, on_retry=None) -> RetryExecutor:
        return RetryExecutor(
            max_attempts=self.settings.research_max_attempts,
            delay_seconds=self.settings.research_retry_delay_seconds,
            sleep=self._sleep,
            on_retry=on_retry,
        )

    @asynccontextmanager
    async def _exclusive(self, campaign_id: uuid.UUID):
        """Per-campaign single flight. A second caller fails fast instead of waiting."""
        lock = self._locks.setdefault(campaign_id, asyncio.Lock())
        if lock.locked():
            raise WorkflowInProgressError(f"A workflow action is already running for campaign {campaign_id}")
        try:
            async with lock:
                yield
        finally:
            self._locks.pop(campaign_id, None)

    def is_running(self, campaign_id: uuid.UUID) -> bool:
        lock = self._locks.get(campaign_id)
        return bool(lock and lock.locked())

    # ══════════════════════════════════════════════════════════════════
    #  start_workflow
    # ══════════════════════════════════════════════════════════════════

    async def start_workflow(self, user_id: uuid.UUID, payload: dict) -> dict:
        config = parse_campaign_config(payload)
        keywords = generate_search_keywords(config.business_description, config.target_country, config.language)
        location = format_search_location(config.target_country)
        campaign = await self.store.create_campaign(
            user_id, config, keywords, location, progress=PROGRESS_FORM_SAVED,
        )
        logger.info(f"start_workflow: campaign {campaign.id} seeded with {len(keywords)} keywords ({location})")
        return {
            "campaignId": str(campaign.id),
            "campaign": campaign.to_dict(),
            "keywords": keywords,
            "searchLocation": location,
            "progress": campaign.progress,
            "currentStep": campaign.current_step,
        }

    # ══════════════════════════════════════════════════════════════════
    #  run_workflow — research stage
    # ══════════════════════════════════════════════════════════════════

    async def run_workflow(self, user_id: uuid.UUID, campaign_id: uuid.UUID, options: Optional[dict] = None) -> dict:
        options = options or {}
        async with self._exclusive(campaign_id):
            campaign = await self.store.get_campaign(campaign_id, user_id)
            if campaign.step is CampaignStep.COMPLETED:
                raise InvalidTransitionError(
                    f"Campaign {campaign_id} is already completed; its research can no longer be replaced"
                )

            tracker = StageTracker(RESEARCH_STEPS)
            running: Optional[str] = None
            try:
                running = "website_analysis"
                website_text = await self._analyze_website(campaign, tracker)

                running = "search_results"
                candidates = await self._load_candidates(campaign, tracker, options.get("searchRunId"))

                running = "source_selection"
                tracker.start(running)
                sources = select_top_articles(
                    candidates, self.settings.max_source_articles, campaign.website_url or "",
                )
                tracker.complete(running, f"Selected {len(sources)} sources", debug={
                    "domains": [s.domain for s in sources],
                })

                running = "article_scraping"
                scraped = await self._scrape_sources(sources, tracker)

                running = "content_planning"
                plan = await self._synthesize_plan(campaign, website_text, scraped, tracker, options)

                running = "save_research"
                tracker.start(running)
                organic_keywords = plan.recommended_keywords or list(campaign.generated_search_keywords or [])
                updated = await self.store.save_research(
                    campaign.id,
                    organic_keywords=organic_keywords,
                    style_analysis=self._style_analysis(campaign, website_text, scraped, plan),
                    progress=PROGRESS_RESEARCHED,
                    expected_version=campaign.lock_version,
                )
                tracker.complete(running, f"Saved {len(plan.topics)} outlines")
            except WorkflowError as e:
                if running:
                    tracker.fail(running, e.message)
                logger.error(f"run_workflow failed for campaign {campaign_id} at {running}: {e.message}")
                raise

            return {
                "campaignId": str(updated.id),
                "topics": [t.to_dict() for t in plan.topics],
                "keywords": organic_keywords,
                "suggestedTitles": [t.title for t in plan.topics],
                "contentPillars": plan.content_pillars,
                "targetAudience": plan.target_audience,
                "competitors": plan.competitors,
                "citations": plan.citations,
                "planSource": "fallback" if plan.is_fallback else "model",
                "progress": updated.progress,
                "currentStep": updated.current_step,
                "steps": tracker.snapshot(),
                "stageProgress": tracker.progress(),
            }

    async def _analyze_website(self, campaign: SeoCampaign, tracker: StageTracker) -> str:
        step = "website_analysis"
        if not campaign.website_url:
            tracker.complete(step, "No website URL; skipped")
            return ""
        tracker.start(step, f"Reading {campaign.website_url}")

        def on_retry(attempt: int, max_attempts: int, exc: BaseException):
            tracker.update(step, message=f"Retrying ({attempt}/{max_attempts}) after: {exc}")

        text = await self._retry(on_retry).run("Website analysis", self._research.extract_website_text, campaign.website_url)
        tracker.complete(step, f"Extracted {len(text)} characters")
        return text

    async def _load_candidates(self, campaign: SeoCampaign, tracker: StageTracker, search_run_id: Optional[str]) -> list[SearchCandidate]:
        step = "search_results"
        tracker.start(step)
        if search_run_id:
            rows = await self.store.get_search_results(campaign.user_id, str(search_run_id))
            source = f"search run {search_run_id}"
        else:
            rows = []
        if not rows:
            rows = await self.store.get_recent_search_results(
                campaign.user_id, self.settings.recent_search_results_limit,
            )
            source = "recent search results"
        tracker.complete(step, f"Loaded {len(rows)} results from {source}")
        return [SearchCandidate.from_record(r) for r in rows]

    async def _scrape_sources(self, sources, tracker: StageTracker) -> list[ScrapedArticle]:
        step = "article_scraping"
        tracker.start(step, f"Fetching {len(sources)} articles")
        scraped: list[ScrapedArticle] = []
        failed = []
        for source in sources:
            try:
                excerpt = await self._research.scrape_article(source.url)
            except TransientServiceError as e:
                logger.warning(f"Skipping {source.url}: {e.message}")
                failed.append(source.url)
                continue
            if excerpt:
                scraped.append(ScrapedArticle(url=source.url, domain=source.domain, excerpt=excerpt, title=source.title))
        tracker.complete(step, f"Scraped {len(scraped)} of {len(sources)} articles", debug={"failed": failed} if failed else None)
        return scraped

    async def _synthesize_plan(
        self,
        campaign: SeoCampaign,
        website_text: str,
        scraped: list[ScrapedArticle],
        tracker: StageTracker,
        options: dict,
    ) -> ContentPlan:
        step = "content_planning"
        tracker.start(step)
        seeds = list(campaign.generated_search_keywords or campaign.extracted_keywords or [])
        min_words = map_article_length_to_min_words(campaign.article_length)
        request = PlanRequest(
            website_url=campaign.website_url or "",
            business_description=campaign.business_description,
            target_country=campaign.target_country or "",
            language=campaign.language or "English",
            number_of_articles=campaign.number_of_articles,
            min_words=min_words,
            seed_keywords=seeds,
            website_text=website_text,
            scraped_articles=scraped,
            writing_style=str(options.get("writingStyle") or ""),
        )
        client = await self._synthesis_factory(options.get("modelId"))

        async def attempt():
            try:
                raw, completion = await client.synthesize_plan(request)
            except WorkflowError as e:
                await self._record_usage(campaign, "content_planning", client.model, None, {"error": e.message})
                raise
            await self._record_usage(campaign, "content_planning", client.model, completion.usage, {
                "sources": len(scraped),
                "parsed": raw is not None,
            })
            return raw

        raw = await self._retry().run("Content planning", attempt)
        if raw is None:
            plan = build_fallback_plan(
                seeds, campaign.number_of_articles, min_words, scraped, campaign.business_description,
            )
        else:
            plan = normalize_plan(
                raw, campaign.number_of_articles, min_words, seeds, scraped, campaign.business_description,
            )
        if plan.is_fallback:
            tracker.complete(step, f"Built {len(plan.topics)} topics from seed keywords", debug={"fallback": True})
        else:
            tracker.complete(step, f"Planned {len(plan.topics)} topics")
        return plan

    @staticmethod
    def _style_analysis(campaign: SeoCampaign, website_text: str, scraped: list[ScrapedArticle], plan: ContentPlan) -> dict:
        return {
            "knowledge_base": {
                "websiteContent": website_text,
                "businessDescription": campaign.business_description,
                "contentGaps": plan.content_gaps,
                "keywordDifficulty": plan.keyword_difficulty,
                "marketOpportunities": plan.market_opportunities,
            },
            "competitorData": {
                "competitors": plan.competitors,
                "citations": plan.citations,
                "sources": [{"url": a.url, "domain": a.domain, "title": a.title} for a in scraped],
            },
            "article_outlines": [t.to_dict() for t in plan.topics],
            "suggested_titles": [t.title for t in plan.topics],
            "contentPillars": plan.content_pillars,
            "targetAudience": plan.target_audience,
            "planSource": "fallback" if plan.is_fallback else "model",
        }

    # ══════════════════════════════════════════════════════════════════
    #  generate_articles — generation stage
    # ══════════════════════════════════════════════════════════════════

    async def generate_articles(
        self,
        user_id: uuid.UUID,
        campaign_id: uuid.UUID,
        selected_titles: list[str],
        options: Optional[dict] = None,
    ) -> dict:
        options = options or {}
        if not isinstance(selected_titles, list) or not selected_titles:
            raise ValidationError("selectedTitles must be a non-empty list")
        style = parse_article_style(options)

        async with self._exclusive(campaign_id):
            campaign = await self.store.get_campaign(campaign_id, user_id)
            if campaign.step is CampaignStep.FORM_DATA_SAVED:
                raise InvalidTransitionError(f"Campaign {campaign_id} has no research yet; run the workflow first")

            outlines = {o.get("title"): Topic.from_dict(o) for o in campaign.article_outlines if o.get("title")}
            tracker = StageTracker([
                (f"article_{i + 1}", str(title), "Generate article") for i, title in enumerate(selected_titles)
            ])
            client = await self._synthesis_factory(options.get("modelId"))
            meta_client = await self._meta_client()
            brand_name = await self.store.get_brand_name(campaign.brand_id) or ""
            with_image = (options.get("featuredImage") or self.settings.featured_image) == "ai_generation"

            generated, skipped, failed = [], [], []
            for i, title in enumerate(selected_titles):
                step = f"article_{i + 1}"
                topic = outlines.get(title)
                if topic is None:
                    logger.warning(f"Campaign {campaign_id}: no outline for '{title}', skipping")
                    tracker.fail(step, "No matching outline in the campaign research")
                    skipped.append(title)
                    continue

                tracker.start(step)
                try:
                    article = await self._generate_one(campaign, topic, client, meta_client, brand_name, with_image, style)
                except Exception as e:
                    logger.error(f"Campaign {campaign_id}: article '{title}' failed: {e}", exc_info=True)
                    tracker.fail(step, str(e))
                    failed.append(title)
                    continue
                tracker.complete(step, f"{article['wordCount']} words")
                generated.append(article)

            if generated:
                campaign = await self.store.transition(
                    campaign.id,
                    CampaignStep.COMPLETED,
                    PROGRESS_COMPLETED,
                    expected_version=campaign.lock_version,
                    status=CampaignStatus.COMPLETED,
                )
            else:
                logger.warning(f"Campaign {campaign_id}: no articles generated, staying at {campaign.current_step}")

            return {
                "campaignId": str(campaign.id),
                "articlesGenerated": len(generated),
                "requested": len(selected_titles),
                "articles": generated,
                "skippedTitles": skipped,
                "failedTitles": failed,
                "progress": campaign.progress,
                "currentStep": campaign.current_step,
                "steps": tracker.snapshot(),
                "stageProgress": tracker.progress(),
            }

    async def _meta_client(self) -> Optional[ContentSynthesisClient]:
        try:
            return await self._synthesis_factory(self.settings.meta_llm_id)
        except ValidationError as e:
            logger.warning(f"Meta description model unavailable, using fallback descriptions: {e.message}")
            return None

    async def _generate_one(
        self,
        campaign: SeoCampaign,
        topic: Topic,
        client: ContentSynthesisClient,
        meta_client: Optional[ContentSynthesisClient],
        brand_name: str,
        with_image: bool,
        style: dict,
    ) -> dict:
        request = ArticleRequest(
            topic=topic,
            language=campaign.language or "English",
            brand_name=brand_name,
            website_url=campaign.website_url or "",
            business_description=campaign.business_description,
            **style,
        )
        try:
            completion = await client.synthesize_article(request)
        except WorkflowError as e:
            await self._record_usage(campaign, "article_generation", client.model, None, {"title": topic.title, "error": e.message})
            raise
        await self._record_usage(campaign, "article_generation", client.model, completion.usage, {"title": topic.title})

        meta_description = await self._meta_description(campaign, topic, meta_client)

        image_url = None
        if with_image:
            try:
                image_url = await client.generate_illustration(topic)
                await self._record_usage(campaign, "featured_image", client.image_model, None, {"title": topic.title})
            except WorkflowError as e:
                logger.warning(f"Featured image failed for '{topic.title}', saving without one: {e.message}")

        article = await self.store.save_article(
            campaign,
            title=topic.title,
            content=completion.text,
            primary_keyword=topic.primary_keyword,
            keywords=[topic.primary_keyword, *topic.secondary_keywords],
            meta_description=meta_description,
            featured_image_url=image_url,
        )
        return {
            "id": str(article.id),
            "title": article.title,
            "wordCount": article.word_count,
            "metaDescription": article.meta_description,
            "featuredImageUrl": article.featured_image_url,
        }

    async def _meta_description(self, campaign: SeoCampaign, topic: Topic, meta_client: Optional[ContentSynthesisClient]) -> str:
        if meta_client is None:
            return fallback_meta_description(topic)
        try:
            completion = await meta_client.generate_meta_description(topic, campaign.language or "English")
        except WorkflowError as e:
            logger.warning(f"Meta description generation failed for '{topic.title}', using fallback: {e.message}")
            return fallback_meta_description(topic)
        await self._record_usage(campaign, "meta_description", meta_client.model, completion.usage, {"title": topic.title})
        return completion.text

    async def _record_usage(
        self,
        campaign: SeoCampaign,
        service_name: str,
        model: str,
        usage: Optional[TokenUsage],
        request_data: dict,
    ) -> None:
        await self.ledger.record(
            campaign.user_id,
            campaign.brand_id,
            service_name,
            model,
            usage,
            {"campaign_id": str(campaign.id), **request_data},
        )

    # ══════════════════════════════════════════════════════════════════
    #  check_progress / combined action
    # ══════════════════════════════════════════════════════════════════

    async def check_progress(
        self,
        user_id: uuid.UUID,
        campaign_id: Optional[uuid.UUID] = None,
        brand_id: Optional[uuid.UUID] = None,
    ) -> dict:
        if campaign_id is not None:
            campaign = await self.store.get_campaign(campaign_id, user_id)
            return {
                "campaignId": str(campaign.id),
                "progress": campaign.progress,
                "currentStep": campaign.current_step,
                "status": campaign.status,
                "running": self.is_running(campaign.id),
            }
        if brand_id is not None:
            return {"brandId": str(brand_id), "progress": 0, "step": "ready", "status": "idle"}
        raise ValidationError("campaignId or brandId is required")

    async def run_workflow_and_generate(self, user_id: uuid.UUID, campaign_id: uuid.UUID, options: Optional[dict] = None) -> dict:
        """Research, then generate every planned title."""
        parse_article_style(options or {})
        research = await self.run_workflow(user_id, campaign_id, options)
        titles = [t["title"] for t in research["topics"]]
        generation = await self.generate_articles(user_id, campaign_id, titles, options)
        return {
            **research,
            **generation,
            "researchSteps": research["steps"],
            "researchStageProgress": research["stageProgress"],
        }
