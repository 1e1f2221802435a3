"""
Tests for the workflow HTTP surface: action dispatch, envelopes and status codes.
"""

import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from seo_campaigns.main import app

CONFIG = {
    "businessDescription": "artisan coffee roastery",
    "numberOfArticles": 2,
    "targetCountry": "Germany",
}


@pytest.fixture
async def client(orchestrator):
    previous = app.state.orchestrator
    app.state.orchestrator = orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.state.orchestrator = previous


async def _post(client, body):
    return await client.post("/api/seo-campaigns/workflow", json=body)


@pytest.mark.anyio
async def test_invalid_action(client):
    response = await _post(client, {"action": "delete_everything"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid action"}


@pytest.mark.anyio
async def test_start_workflow(client):
    response = await _post(client, {"action": "start_workflow", **CONFIG})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["progress"] == 20
    assert data["searchLocation"] == "DE"
    uuid.UUID(data["campaignId"])


@pytest.mark.anyio
async def test_start_workflow_missing_description(client):
    response = await _post(client, {"action": "start_workflow", "numberOfArticles": 2})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "businessDescription" in response.json()["error"]


@pytest.mark.anyio
async def test_run_workflow_requires_campaign_id(client):
    response = await _post(client, {"action": "run_workflow"})
    assert response.status_code == 400
    assert response.json()["error"] == "campaignId is required"


@pytest.mark.anyio
async def test_full_flow_over_http(client):
    started = (await _post(client, {"action": "start_workflow", **CONFIG})).json()
    campaign_id = started["campaignId"]

    researched = await _post(client, {"action": "run_workflow", "campaignId": campaign_id})
    assert researched.status_code == 200
    assert researched.json()["progress"] == 60

    generated = await _post(client, {
        "action": "generate_articles",
        "campaignId": campaign_id,
        "selectedTitles": ["Coffee A"],
    })
    assert generated.status_code == 200
    assert generated.json()["articlesGenerated"] == 1

    polled = await client.get(f"/api/seo-campaigns/{campaign_id}")
    assert polled.json()["progress"] == 100
    assert polled.json()["status"] == "completed"
    assert polled.json()["running"] is False


@pytest.mark.anyio
async def test_check_progress_by_brand(client):
    brand_id = str(uuid.uuid4())
    response = await _post(client, {"action": "check_progress", "brandId": brand_id})
    assert response.status_code == 200
    assert response.json() == {
        "success": True, "brandId": brand_id, "progress": 0, "step": "ready", "status": "idle",
    }


@pytest.mark.anyio
async def test_unknown_campaign_is_404(client):
    response = await client.get(f"/api/seo-campaigns/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.anyio
async def test_malformed_campaign_id_is_400(client):
    response = await _post(client, {"action": "check_progress", "campaignId": "not-a-uuid"})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_missing_action_uses_error_envelope(client):
    response = await _post(client, {"campaignId": str(uuid.uuid4())})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"].startswith("action")


@pytest.mark.anyio
async def test_malformed_selected_titles_uses_error_envelope(client):
    response = await _post(client, {"action": "generate_articles", "selectedTitles": "Coffee A"})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "selectedTitles" in response.json()["error"]
