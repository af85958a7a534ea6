"""
Recommendation API

Exposes generation, serving, interaction tracking, trending and metrics
over HTTP/JSON:

    POST /recommendations/{learner_id}/generate
    GET  /recommendations/{learner_id}?kind=&limit=
    GET  /recommendations/{learner_id}/top?limit=
    GET  /recommendations/{learner_id}/analytics
    GET  /recommendations/{learner_id}/similar?limit=
    PUT  /recommendations/{record_id}/interaction
    GET  /recommendations/trending?kind=&limit=
    GET  /recommendations/metrics            (X-Admin-Token required)
"""

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from recengine.core.config import Settings
from recengine.core.errors import (
    Internal,
    InvalidArgument,
    NotFound,
    RecommendationError,
    UpstreamUnavailable,
)
from recengine.core.schemas import OfferingKind
from recengine.pipeline.orchestrator import RecommendationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

_ERROR_STATUS: list[tuple[type[RecommendationError], int]] = [
    (NotFound, 404),
    (InvalidArgument, 400),
    (UpstreamUnavailable, 503),
    (Internal, 500),
]

_KIND_ALIASES = {
    "exam": OfferingKind.EXAM,
    "exams": OfferingKind.EXAM,
    "opportunity": OfferingKind.OPPORTUNITY,
    "opportunities": OfferingKind.OPPORTUNITY,
}


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class InteractionRequest(BaseModel):
    """Request body for the interaction endpoint."""
    kind: str = Field(..., description="One of: viewed, saved, applied")


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_engine(request: Request) -> RecommendationEngine:
    return request.app.state.engine


def require_admin(
    request: Request,
    x_admin_token: str | None = Header(default=None),
) -> None:
    """Gate privileged endpoints. With no token configured, nobody is admitted."""
    expected = request.app.state.settings.api.admin_token
    if not expected or x_admin_token is None or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=403, detail="Admin token required")


def parse_kind(value: str | None) -> OfferingKind | None:
    if value is None or value == "":
        return None
    kind = _KIND_ALIASES.get(value.strip().lower())
    if kind is None:
        msg = f"Unsupported offering kind '{value}'. Expected exam or opportunity"
        raise InvalidArgument(msg)
    return kind


# =============================================================================
# ENDPOINTS
# =============================================================================
# Static paths first so they are not captured by /{learner_id}.

@router.get("/trending", summary="Trending offerings, independent of any learner")
async def get_trending(
    kind: str | None = None,
    limit: int = 10,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    items = await engine.trending(parse_kind(kind), limit=limit)
    return {
        "kind": kind or "all",
        "items": [i.model_dump(mode="json") for i in items],
    }


@router.get(
    "/metrics",
    summary="Aggregate metrics per strategy",
    dependencies=[Depends(require_admin)],
)
async def get_metrics(engine: RecommendationEngine = Depends(get_engine)) -> dict[str, Any]:
    return engine.metrics().model_dump(mode="json")


@router.post("/{learner_id}/generate", summary="Generate recommendations for a learner")
async def generate(
    learner_id: str,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.generate(learner_id)
    return {
        "learner_id": result.learner_id,
        "generated_count": result.generated_count,
        "by_strategy": result.by_strategy,
        "warnings": result.warnings,
    }


@router.get("/{learner_id}/top", summary="Top recommendations not yet viewed")
async def get_top(
    learner_id: str,
    limit: int = 10,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    records = await engine.top(learner_id, limit=limit)
    return {
        "learner_id": learner_id,
        "recommendations": [r.model_dump(mode="json") for r in records],
    }


@router.get("/{learner_id}/analytics", summary="Interaction counts per offering kind")
async def get_analytics(
    learner_id: str,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    analytics = await engine.analytics(learner_id)
    return {
        "learner_id": learner_id,
        "analytics": [a.model_dump(mode="json") for a in analytics],
    }


@router.get("/{learner_id}/similar", summary="Learners with overlapping interests")
async def get_similar(
    learner_id: str,
    limit: int = 10,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    learners = await engine.similar_learners(learner_id, limit=limit)
    return {
        "learner_id": learner_id,
        "similar_learners": [
            {"id": u.id, "name": u.name, "stage": u.stage.value, "interests": u.interests}
            for u in learners
        ],
    }


@router.get("/{learner_id}", summary="Active recommendations for a learner")
async def get_recommendations(
    learner_id: str,
    kind: str | None = None,
    limit: int = 20,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    records = await engine.list_for_learner(learner_id, kind=parse_kind(kind), limit=limit)
    return {
        "learner_id": learner_id,
        "recommendations": [r.model_dump(mode="json") for r in records],
    }


@router.put("/{record_id}/interaction", summary="Record a learner interaction")
async def put_interaction(
    record_id: int,
    body: InteractionRequest,
    engine: RecommendationEngine = Depends(get_engine),
) -> dict[str, Any]:
    record = engine.record_interaction(record_id, body.kind)
    return record.model_dump(mode="json")


# =============================================================================
# APP
# =============================================================================

async def _handle_recommendation_error(request: Request, exc: Exception) -> JSONResponse:
    status = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed path or query parameters are invalid arguments (400).

    Body validation keeps FastAPI's default 422 response.
    """
    errors = exc.errors()
    if errors and all(e["loc"][0] in ("path", "query") for e in errors):
        detail = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'][1:])}: {e['msg']}" for e in errors
        )
        return JSONResponse(status_code=400, content={"detail": detail})
    return await request_validation_exception_handler(request, exc)


def create_app(engine: RecommendationEngine, settings: Settings) -> FastAPI:
    """Build the FastAPI app around an already-wired engine."""
    app = FastAPI(
        title="Learner Recommendation Engine",
        description="Ranks examinations and opportunities for learners",
        version="1.0.0",
    )
    app.state.engine = engine
    app.state.settings = settings
    app.add_exception_handler(RecommendationError, _handle_recommendation_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.include_router(router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "recengine", "version": "1.0.0"}

    return app
