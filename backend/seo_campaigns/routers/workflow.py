"""
Workflow Router — single action endpoint for the SEO campaign workflow, plus campaign polling.

POST /api/seo-campaigns/workflow  {action, ...}
    start_workflow             {businessDescription, numberOfArticles, websiteUrl?, articleLength?, language?, targetCountry?, brandId?}
    run_workflow               {campaignId, searchRunId?, modelId?, writingStyle?}
    generate_articles          {campaignId, selectedTitles[], modelId?, tone?, featuredImage?}
    check_progress             {campaignId} or {brandId}
    run_workflow_and_generate  {campaignId, ...}

Every response is {success: true, ...} or {success: false, error}.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from seo_campaigns.auth import get_current_user_id
from seo_campaigns.errors import ValidationError, WorkflowError
from seo_campaigns.services.orchestrator import CampaignOrchestrator
from seo_campaigns.utils import parse_uuid, safe_error_detail

logger = logging.getLogger(__name__)
router = APIRouter()

ACTIONS = (
    "start_workflow",
    "run_workflow",
    "generate_articles",
    "check_progress",
    "run_workflow_and_generate",
)


class WorkflowRequest(BaseModel):
    """Action name plus action-specific fields, passed through as-is."""
    model_config = ConfigDict(extra="allow")

    action: str
    campaignId: Optional[str] = None
    brandId: Optional[str] = None
    selectedTitles: Optional[list[str]] = None

    def payload(self) -> dict:
        return self.model_dump(exclude={"action"})


def get_orchestrator(request: Request) -> CampaignOrchestrator:
    return request.app.state.orchestrator


def error_response(exc: WorkflowError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


def _campaign_id(body: WorkflowRequest) -> uuid.UUID:
    if not body.campaignId:
        raise ValidationError("campaignId is required")
    return parse_uuid(body.campaignId, "campaignId")


async def _dispatch(body: WorkflowRequest, user_id: uuid.UUID, orchestrator: CampaignOrchestrator) -> dict:
    payload = body.payload()
    if body.action == "start_workflow":
        return await orchestrator.start_workflow(user_id, payload)
    if body.action == "run_workflow":
        return await orchestrator.run_workflow(user_id, _campaign_id(body), payload)
    if body.action == "generate_articles":
        return await orchestrator.generate_articles(user_id, _campaign_id(body), body.selectedTitles or [], payload)
    if body.action == "check_progress":
        brand_id = parse_uuid(body.brandId, "brandId") if body.brandId else None
        campaign_id = _campaign_id(body) if body.campaignId else None
        return await orchestrator.check_progress(user_id, campaign_id=campaign_id, brand_id=brand_id)
    return await orchestrator.run_workflow_and_generate(user_id, _campaign_id(body), payload)


@router.post("/workflow")
async def workflow_action(
    body: WorkflowRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator),
):
    if body.action not in ACTIONS:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid action"})

    logger.info(f"Workflow action {body.action} by user {user_id}")
    try:
        result = await _dispatch(body, user_id, orchestrator)
    except WorkflowError as e:
        logger.warning(f"Workflow action {body.action} failed ({e.status_code}): {e.message}")
        return error_response(e)
    except Exception as e:
        return JSONResponse(status_code=500, content={"success": False, "error": safe_error_detail(e)})
    return {"success": True, **result}


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator),
):
    """Persisted campaign state, for callers polling progress between actions."""
    try:
        campaign = await orchestrator.store.get_campaign(parse_uuid(campaign_id, "campaign_id"), user_id)
    except WorkflowError as e:
        return error_response(e)
    return {
        "success": True,
        "campaign": campaign.to_dict(),
        "progress": campaign.progress,
        "currentStep": campaign.current_step,
        "status": campaign.status,
        "running": orchestrator.is_running(campaign.id),
    }
