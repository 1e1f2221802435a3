"""
Tests for campaign persistence: forward-only steps, monotonic progress, optimistic locking.
"""

import uuid

import pytest

from seo_campaigns.errors import CampaignNotFoundError, InvalidTransitionError, WorkflowInProgressError
from seo_campaigns.models import Brand, CampaignStatus, CampaignStep, GoogleSearchResult
from seo_campaigns.services.campaign_store import CampaignConfig

from conftest import USER_ID, add_search_results


async def _create(store, **overrides):
    config = CampaignConfig(business_description="artisan coffee roastery", number_of_articles=3, **overrides)
    return await store.create_campaign(USER_ID, config, ["artisan coffee services"], "SG", progress=20)


@pytest.mark.anyio
async def test_create_and_get_campaign(store):
    campaign = await _create(store, target_country="Singapore")

    loaded = await store.get_campaign(campaign.id, USER_ID)
    assert loaded.current_step == "form_data_saved"
    assert loaded.progress == 20
    assert loaded.lock_version == 0
    assert loaded.formatted_search_location == "SG"
    assert loaded.generated_search_keywords == ["artisan coffee services"]


@pytest.mark.anyio
async def test_get_campaign_is_scoped_to_owner(store):
    campaign = await _create(store)
    with pytest.raises(CampaignNotFoundError):
        await store.get_campaign(campaign.id, uuid.uuid4())


@pytest.mark.anyio
async def test_transition_bumps_version_and_keeps_progress_monotonic(store):
    campaign = await _create(store)

    updated = await store.transition(campaign.id, CampaignStep.KEYWORD_RESEARCH, 60, expected_version=0)
    assert updated.current_step == "keyword_research"
    assert updated.lock_version == 1

    again = await store.transition(campaign.id, CampaignStep.KEYWORD_RESEARCH, 40)
    assert again.progress == 60
    assert again.lock_version == 2


@pytest.mark.anyio
async def test_transition_never_goes_backwards(store):
    campaign = await _create(store)
    await store.transition(campaign.id, CampaignStep.COMPLETED, 100, status=CampaignStatus.COMPLETED)

    with pytest.raises(InvalidTransitionError):
        await store.transition(campaign.id, CampaignStep.KEYWORD_RESEARCH, 60)

    loaded = await store.get_campaign(campaign.id)
    assert loaded.current_step == "completed"
    assert loaded.status == "completed"


@pytest.mark.anyio
async def test_stale_writer_loses(store):
    campaign = await _create(store)
    await store.save_research(campaign.id, ["kw"], {"article_outlines": []}, 60, expected_version=0)

    with pytest.raises(WorkflowInProgressError):
        await store.save_research(campaign.id, ["other"], {"article_outlines": []}, 60, expected_version=0)

    loaded = await store.get_campaign(campaign.id)
    assert loaded.organic_keywords == ["kw"]


@pytest.mark.anyio
async def test_search_results_by_run_or_session(store, session_factory):
    await add_search_results(session_factory, [
        {"url": "https://b.example", "domain": "b.example", "position": 2},
        {"url": "https://a.example", "domain": "a.example", "position": 1},
    ], run_id="run-1")
    async with session_factory() as session:
        session.add(GoogleSearchResult(user_id=USER_ID, search_session_id="sess-9", url="https://c.example", position=1))
        await session.commit()

    by_run = await store.get_search_results(USER_ID, "run-1")
    assert [r.url for r in by_run] == ["https://a.example", "https://b.example"]
    by_session = await store.get_search_results(USER_ID, "sess-9")
    assert [r.url for r in by_session] == ["https://c.example"]
    assert await store.get_search_results(uuid.uuid4(), "run-1") == []
    assert len(await store.get_recent_search_results(USER_ID, limit=2)) == 2


@pytest.mark.anyio
async def test_brand_name_and_articles(store, session_factory):
    async with session_factory() as session:
        brand = Brand(user_id=USER_ID, name="Bean There")
        session.add(brand)
        await session.commit()

    campaign = await _create(store, brand_id=brand.id)
    assert await store.get_brand_name(campaign.brand_id) == "Bean There"
    assert await store.get_brand_name(None) is None

    article = await store.save_article(campaign, "Title", "one two three", primary_keyword="coffee")
    assert article.word_count == 3
    assert article.brand_id == brand.id
    assert [a.title for a in await store.list_articles(campaign.id)] == ["Title"]
