"""Recommendations router – exposes the recommendation engine via HTTP.

GET /recommendations
    Personalized recommendations for the current user, enriched with post
    content.

POST /recommendations/track
    Record an interaction with a post.

PUT /recommendations/feedback
    Record explicit positive or negative feedback on a post.

GET /recommendations/metrics
    Per-strategy counts and average scores of the caller's stored
    recommendations.  With ``all_users=true`` the counts cover every user;
    that view is reserved for operators listed in ``RECOMMENDER_OPERATOR_IDS``.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..errors import InvalidArgument
from ..lib.engine import RecommendationEngine
from ..models import Action, Feedback, RecommendationMetrics, StrategyType
from ..security import CurrentUser, require_operator, verify_api_key

router = APIRouter(tags=["recommendations"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)

MAX_LIMIT = 50


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class EnrichedRecommendation(BaseModel):
    post_id: str
    strategy: StrategyType
    score: float = Field(..., description="Combined score in [0, 1]")
    rank: int
    post: dict = Field(..., description="Post document from the content store")


class RecommendationsResponse(BaseModel):
    recommendations: list[EnrichedRecommendation]
    total: int
    user_id: str
    generated_at: datetime


class TrackInteractionRequest(BaseModel):
    post_id: str = Field(..., min_length=1)
    action: Action


class FeedbackRequest(BaseModel):
    post_id: str = Field(..., min_length=1)
    feedback: Feedback
    reason: str | None = Field(None, max_length=500)


class StatusResponse(BaseModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_engine(request: Request) -> RecommendationEngine:
    return request.app.state.engine


def split_types(types: str | None) -> list[str]:
    if not types:
        return []
    return [t.strip() for t in types.split(",") if t.strip()]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/recommendations", response_model=RecommendationsResponse)
async def recommendations_get(
    user_id: CurrentUser,
    engine: RecommendationEngine = Depends(get_engine),
    limit: int = Query(10, description=f"Number of recommendations (1-{MAX_LIMIT})"),
    types: str | None = Query(
        None, description="Comma-separated recommendation types; defaults to hybrid"
    ),
) -> RecommendationsResponse:
    """Generate, store and enrich recommendations for the current user."""
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidArgument(f"limit must be between 1 and {MAX_LIMIT}")

    batch = await engine.generate_batch(user_id, limit, split_types(types))
    enriched = await engine.enrich(batch.items)

    return RecommendationsResponse(
        recommendations=[
            EnrichedRecommendation(
                post_id=rec.post_id,
                strategy=rec.strategy,
                score=rec.normalized_score,
                rank=rec.rank,
                post=post,
            )
            for rec, post in enriched
        ],
        total=len(enriched),
        user_id=user_id,
        generated_at=batch.generated_at,
    )


@router.post("/recommendations/track", response_model=StatusResponse)
async def recommendations_track(
    payload: TrackInteractionRequest,
    user_id: CurrentUser,
    engine: RecommendationEngine = Depends(get_engine),
) -> StatusResponse:
    await engine.track_interaction(user_id, payload.post_id, payload.action)
    return StatusResponse(success=True, message="Interaction tracked successfully")


@router.put("/recommendations/feedback", response_model=StatusResponse)
async def recommendations_feedback(
    payload: FeedbackRequest,
    user_id: CurrentUser,
    engine: RecommendationEngine = Depends(get_engine),
) -> StatusResponse:
    await engine.record_feedback(user_id, payload.post_id, payload.feedback, payload.reason)
    return StatusResponse(success=True, message="Feedback recorded successfully")


@router.get("/recommendations/metrics", response_model=RecommendationMetrics)
async def recommendations_metrics(
    user_id: CurrentUser,
    engine: RecommendationEngine = Depends(get_engine),
    all_users: bool = Query(False, description="Aggregate over every user (operators only)"),
) -> RecommendationMetrics:
    if all_users:
        require_operator(user_id)
        return await engine.get_metrics(None)
    return await engine.get_metrics(user_id)
