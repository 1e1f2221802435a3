"""
SEO Campaign Engine — FastAPI Backend
Runs the campaign workflow: keyword seeding, competitor research, content planning,
and batch article generation. All state persisted to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from seo_campaigns.config import get_settings
from seo_campaigns.database import async_session, init_db, check_db_connection
from seo_campaigns.errors import WorkflowError
from seo_campaigns.routers import workflow
from seo_campaigns.services.campaign_store import CampaignStore
from seo_campaigns.services.orchestrator import CampaignOrchestrator, stored_key_synthesis_factory
from seo_campaigns.services.usage_service import UsageLedger

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


def build_orchestrator(session_factory=async_session) -> CampaignOrchestrator:
    return CampaignOrchestrator(
        store=CampaignStore(session_factory),
        ledger=UsageLedger(session_factory),
        synthesis_factory=stored_key_synthesis_factory(session_factory),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting SEO Campaign Engine...")
    try:
        await init_db()
        logger.info("Database initialized — all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="SEO Campaign Engine",
    description="Staged SEO content workflow: research, plan, and generate articles",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.orchestrator = build_orchestrator()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Errors raised outside the action handler (e.g. auth) get the same envelope."""
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are a ValidationError (400) in the workflow envelope."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request body")
    return JSONResponse(status_code=400, content={"success": False, "error": message})


# ── Register Routers (auth is resolved per route) ─────────────────────
app.include_router(workflow.router, prefix="/api/seo-campaigns", tags=["SEO Campaign Workflow"])


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "SEO Campaign Engine",
        "database": "connected" if db_ok else "disconnected",
    }
