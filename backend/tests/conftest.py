"""
Shared fixtures. The environment is pinned before seo_campaigns is imported so the
module-level engine points at a throwaway SQLite file instead of Postgres.
"""

import os
import tempfile
import uuid

_TEST_DB = os.path.join(tempfile.mkdtemp(prefix="seo_campaigns_"), "app.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["ENVIRONMENT"] = "development"
os.environ["API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["FEATURED_IMAGE"] = "none"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from seo_campaigns.config import get_settings
from seo_campaigns.database import Base
from seo_campaigns.errors import TransientServiceError
from seo_campaigns.models import GoogleSearchResult
import seo_campaigns.models  # noqa: F401
from seo_campaigns.services.campaign_store import CampaignStore
from seo_campaigns.services.content_synthesis import Completion
from seo_campaigns.services.orchestrator import CampaignOrchestrator
from seo_campaigns.services.usage_service import TokenUsage, UsageLedger

get_settings.cache_clear()

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return CampaignStore(session_factory)


@pytest.fixture
def ledger(session_factory):
    return UsageLedger(session_factory)


# ── Fakes for the external collaborators ──────────────────────────────

class FakeResearch:
    """Website and article fetches without the network."""

    def __init__(self, website_text="We roast small-batch coffee.", fail_website=False, failing_urls=()):
        self.website_text = website_text
        self.fail_website = fail_website
        self.failing_urls = set(failing_urls)
        self.website_calls = 0
        self.scraped = []

    async def extract_website_text(self, url):
        self.website_calls += 1
        if self.fail_website:
            raise TransientServiceError(f"{url} responded with HTTP 503")
        return self.website_text

    async def scrape_article(self, url):
        if url in self.failing_urls:
            raise TransientServiceError(f"{url} responded with HTTP 404")
        self.scraped.append(url)
        return f"Competitor article text from {url}"


class FakeSynthesis:
    """Scripted content synthesis client."""

    model = "fake-model"
    image_model = "fake-image"

    def __init__(self, plan=None, failing_titles=(), plan_error=None):
        self.plan = plan
        self.failing_titles = set(failing_titles)
        self.plan_error = plan_error
        self.plan_calls = 0
        self.article_titles = []

    async def synthesize_plan(self, request):
        self.plan_calls += 1
        if self.plan_error:
            raise self.plan_error
        return self.plan, Completion("{}", TokenUsage(100, 50), self.model)

    async def synthesize_article(self, request):
        title = request.topic.title
        self.article_titles.append(title)
        if title in self.failing_titles:
            raise TransientServiceError(f"Content service error for {title}")
        return Completion(f"# {title}\n\nBody text for {title}.", TokenUsage(200, 800), self.model)

    async def generate_meta_description(self, topic, language="English"):
        return Completion(f"Learn about {topic.primary_keyword}.", TokenUsage(20, 10), self.model)

    async def generate_illustration(self, topic):
        return "https://images.example.com/featured.png"


def make_plan(titles):
    return {
        "topics": [
            {
                "title": title,
                "primaryKeyword": title.lower(),
                "secondaryKeywords": ["beans", "roasting", "espresso"],
                "outline": ["Intro", "Origins", "Roast levels", "Brewing", "Storage", "Conclusion"],
                "minWordCount": 900,
                "description": f"All about {title}.",
            }
            for title in titles
        ],
        "recommendedKeywords": ["specialty coffee", "coffee beans"],
        "competitors": ["roaster.example"],
        "contentPillars": ["Guides"],
        "targetAudience": "Home baristas",
        "citations": [{"source": "https://roaster.example/a", "quote": "Fresh beans matter."}],
    }


@pytest.fixture
def research():
    return FakeResearch()


@pytest.fixture
def synthesis():
    return FakeSynthesis(plan=make_plan(["Coffee A", "Coffee B", "Coffee C"]))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def orchestrator(store, ledger, research, synthesis, sleeps):
    async def factory(model_id=None):
        return synthesis

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return CampaignOrchestrator(
        store=store,
        ledger=ledger,
        synthesis_factory=factory,
        research_client=research,
        sleep=fake_sleep,
    )


async def add_search_results(session_factory, rows, user_id=USER_ID, run_id="run-1"):
    async with session_factory() as session:
        for row in rows:
            session.add(GoogleSearchResult(user_id=user_id, search_run_id=run_id, **row))
        await session.commit()
