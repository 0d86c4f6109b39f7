"""
API Endpoints for Website Redesign Analysis

FastAPI app that:
1. Rate-limits analysis requests per client address
2. Runs the redesign pipeline, streaming progress as NDJSON when asked
3. Checks whether a URL can be fetched before a run (preflight)
4. Serves finished runs to holders of the access token
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from siterefresh import __version__
from siterefresh.agents import AgentBuilder
from siterefresh.analyzer import ClaudeClient
from siterefresh.cache import RateLimiter, SeedCache
from siterefresh.collector import PageFetcher
from siterefresh.database import Repository, check_db_connection, init_db
from siterefresh.errors import (
    FetchError,
    InvalidURLError,
    PipelineError,
    PipelineTimeoutError,
)
from siterefresh.persistence import FileBlobStorage, PromptLogger
from siterefresh.pipeline import (
    NDJSON_MEDIA_TYPE,
    AnalysisOrchestrator,
    stream_analysis,
    user_message_for,
)
from siterefresh.utils import Settings, get_settings
from siterefresh.utils.urls import normalize_url

settings = get_settings()

# Configure logging to stdout (hosting platforms treat stderr as errors)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="SiteRefresh Redesign Engine",
    description="Website scoring and redesign proposals powered by Claude",
    version=__version__,
)


# ============================================================================
# SERVICES
# ============================================================================

@dataclass
class Services:
    """Long-lived collaborators shared by all requests."""
    repository: Repository
    rate_limiter: RateLimiter
    fetcher: PageFetcher
    prompt_logger: PromptLogger
    orchestrator: Optional[AnalysisOrchestrator]


def build_services(settings: Settings) -> Services:
    """Wire the pipeline from settings."""
    repository = Repository()
    prompt_logger = PromptLogger(repository.create_prompt_log)
    fetcher = PageFetcher(timeout=settings.FETCH_TIMEOUT_SECONDS)

    async def load_skills():
        return await asyncio.to_thread(repository.load_active_skills)

    async def load_benchmarks(industry: str):
        return await asyncio.to_thread(repository.load_benchmarks, industry)

    seed_cache = SeedCache(
        load_skills,
        load_benchmarks,
        skills_ttl=settings.SKILL_CACHE_TTL_SECONDS,
    )

    orchestrator = None
    if settings.ANTHROPIC_API_KEY:
        client = ClaudeClient(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )
        orchestrator = AnalysisOrchestrator(
            repository=repository,
            seed_cache=seed_cache,
            agent_builder=AgentBuilder(client, prompt_logger=prompt_logger),
            fetcher=fetcher,
            blob_storage=FileBlobStorage(settings.STORAGE_PATH, settings.PUBLIC_STORAGE_URL),
            settings=settings,
        )
    else:
        logger.error("ANTHROPIC_API_KEY not set - analysis endpoint disabled")

    return Services(
        repository=repository,
        rate_limiter=RateLimiter(),
        fetcher=fetcher,
        prompt_logger=prompt_logger,
        orchestrator=orchestrator,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Get or create the process-wide services."""
    global _services
    if _services is None:
        _services = build_services(settings)
    return _services


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database, seed skills, connect the rate limiter."""
    logger.info("Initializing database...")
    services = get_services()
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
            services.repository.seed_default_skills()
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    await services.rate_limiter.initialize()
    services.rate_limiter.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Release connections and flush pending prompt logs."""
    if _services is None:
        return
    await _services.rate_limiter.close()
    await _services.prompt_logger.drain()
    await _services.fetcher.close()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class AnalyzeRequest(BaseModel):
    """Request to analyze and redesign a website."""
    url: str = Field(..., min_length=1, max_length=2048, description="Website URL, scheme optional")


class AnalyzeResponse(BaseModel):
    """Non-streaming analysis result."""
    run_id: str
    access_token: str
    status: str
    from_cooldown: bool = False


class PreflightResponse(BaseModel):
    """Whether the URL can be fetched."""
    ok: bool
    kind: Optional[str] = None
    message: Optional[str] = None


# ============================================================================
# HELPERS
# ============================================================================

def client_key(request: Request) -> str:
    """First X-Forwarded-For address, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def wants_stream(request: Request, stream: bool) -> bool:
    return stream or NDJSON_MEDIA_TYPE in request.headers.get("accept", "")


def status_code_for(error: Exception) -> int:
    """HTTP status for a failed non-streaming analysis."""
    if isinstance(error, InvalidURLError):
        return 400
    if isinstance(error, FetchError):
        return 422
    if isinstance(error, PipelineTimeoutError):
        return 504
    return 502


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "SiteRefresh Redesign Engine"}


@app.get("/api/health")
async def health(services: Services = Depends(get_services)):
    """Detailed health check including database and limiter status."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "database": "connected" if check_db_connection() else "disconnected",
        "rate_limiter": services.rate_limiter.backend,
        "analysis_enabled": services.orchestrator is not None,
    }


@app.post("/api/analyze")
async def analyze(
    body: AnalyzeRequest,
    request: Request,
    stream: bool = Query(False, description="Stream progress as NDJSON"),
    services: Services = Depends(get_services),
):
    """
    Run the redesign pipeline for a URL.

    Streams NDJSON progress events when ``?stream=true`` or
    ``Accept: application/x-ndjson``; otherwise waits and returns the run id.
    """
    key = client_key(request)
    limit = await services.rate_limiter.check(key)
    if not limit.allowed:
        logger.info(f"Rate limited {key}, retry in {limit.retry_after_ms}ms")
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a minute and try again.",
            headers={"Retry-After": str(limit.retry_after_seconds)},
        )

    try:
        normalize_url(body.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=e.user_message)

    if services.orchestrator is None:
        raise HTTPException(status_code=503, detail="Analysis is temporarily unavailable.")

    if wants_stream(request, stream):
        return StreamingResponse(
            stream_analysis(services.orchestrator, body.url),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    try:
        outcome = await services.orchestrator.run_analysis(body.url)
    except Exception as e:
        if not isinstance(e, PipelineError):
            logger.error(f"Analysis of {body.url} failed: {type(e).__name__}: {e}")
        raise HTTPException(status_code=status_code_for(e), detail=user_message_for(e))

    return AnalyzeResponse(
        run_id=str(outcome.run_id),
        access_token=outcome.access_token,
        status=outcome.status,
        from_cooldown=outcome.from_cooldown,
    )


@app.post("/api/analyze/preflight", response_model=PreflightResponse)
async def preflight(body: AnalyzeRequest, services: Services = Depends(get_services)):
    """Check that a URL is valid and fetchable before starting a run."""
    try:
        normalize_url(body.url)
    except InvalidURLError as e:
        return PreflightResponse(ok=False, kind="invalid_url", message=e.user_message)

    result = await services.fetcher.preflight(body.url)
    return PreflightResponse(ok=result.ok, kind=result.kind, message=result.message)


@app.get("/api/analyze/{run_id}")
async def get_analysis(
    run_id: UUID,
    token: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Run summary with scores and layouts for the holder of the access token."""
    run = await asyncio.to_thread(services.repository.get_run_for_token, run_id, token)
    if run is None:
        raise HTTPException(status_code=404, detail="Analysis not found")

    run.pop("access_token", None)
    return run
