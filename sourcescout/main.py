"""FastAPI application wiring the search service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import SearchError
from .models import SearchRequest, SearchResponse, TierSummary
from .registry import get_search_service
from .search_service import SearchService
from .tiers import tier_summaries

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers so provider events show up.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
    logging.getLogger(name).setLevel(LOG_LEVEL)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = get_search_service().coordinator.orchestrator
    await orchestrator.open()
    try:
        yield
    finally:
        await orchestrator.close()


app = FastAPI(title="SourceScout Search Service", lifespan=lifespan)


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = str(errors[0].get("msg", "Invalid request")) if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message.removeprefix("Value error, ")})


def caller_tier(x_subscription_tier: Optional[str] = Header(None)) -> Optional[str]:
    return x_subscription_tier


def caller_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


@app.get("/health")
async def health(service: SearchService = Depends(get_search_service)) -> dict:
    orchestrator = service.coordinator.orchestrator
    return {
        "status": "ok",
        "providers": sorted(source.value for source in orchestrator.providers),
        "enrichment": sorted(source.value for source, e in orchestrator.enrichers.items() if e.is_enabled()),
    }


@app.get("/api/v1/tiers", response_model=List[TierSummary], response_model_by_alias=True)
async def tiers() -> List[TierSummary]:
    return tier_summaries()


@app.post(
    "/api/v1/search",
    response_model=SearchResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def search(
    body: SearchRequest,
    tier: Optional[str] = Depends(caller_tier),
    user_id: Optional[str] = Depends(caller_id),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    return await service.run(body, tier=tier, user_id=user_id)
