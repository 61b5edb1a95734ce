from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Action(str, Enum):
    """A user action on a post, in increasing order of signal strength."""

    VIEW = "view"
    CLICK = "click"
    LIKE = "like"
    SHARE = "share"

    @property
    def weight(self) -> float:
        return ACTION_WEIGHTS[self]


ACTION_WEIGHTS: dict[Action, float] = {
    Action.VIEW: 1.0,
    Action.CLICK: 2.0,
    Action.LIKE: 3.0,
    Action.SHARE: 4.0,
}


class StrategyType(str, Enum):
    """One independent scoring strategy."""

    TRENDING = "trending"
    SIMILAR_CONTENT = "similar_content"
    USER_INTEREST = "user_interest"
    COLLABORATIVE_FILTERING = "collaborative_filtering"
    CONTENT_BASED = "content_based"


class RecommendationType(str, Enum):
    """A requested recommendation type: a single strategy, or ``hybrid``."""

    TRENDING = "trending"
    SIMILAR_CONTENT = "similar_content"
    USER_INTEREST = "user_interest"
    COLLABORATIVE_FILTERING = "collaborative_filtering"
    CONTENT_BASED = "content_based"
    HYBRID = "hybrid"

    def strategies(self) -> list[StrategyType]:
        if self is RecommendationType.HYBRID:
            return list(StrategyType)
        return [StrategyType(self.value)]


class Feedback(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ItemState(str, Enum):
    """Lifecycle of a post inside a stored recommendation batch."""

    GENERATED = "generated"
    SEEN = "seen"
    INTERACTED = "interacted"
    FED_BACK = "fed_back"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Interactions and profiles
# ---------------------------------------------------------------------------

class Interaction(BaseModel):
    """A timestamped user action on a post.  Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    post_id: str
    action: Action
    weight: float
    timestamp: datetime


class UserProfile(BaseModel):
    """Interest affinities and recent history for one user.

    ``interest_vector`` keys are namespaced: ``category:<id>`` and
    ``tag:<id>``.
    """

    user_id: str
    interest_vector: dict[str, float] = Field(default_factory=dict)
    recent_interactions: list[Interaction] = Field(default_factory=list)
    interaction_count: int = 0


class ContentProfile(BaseModel):
    """Derived summary of a post's taxonomy and engagement."""

    model_config = ConfigDict(frozen=True)

    post_id: str
    category_id: str | None = None
    tag_ids: frozenset[str] = Field(default_factory=frozenset)
    author_id: str | None = None
    published_at: datetime
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    engagement_score: float = 0.0

    @field_validator("published_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def feature_keys(self) -> list[str]:
        """Interest-vector keys this post credits, in a stable order."""
        keys = []
        if self.category_id:
            keys.append(category_key(self.category_id))
        keys.extend(tag_key(t) for t in sorted(self.tag_ids))
        return keys


def category_key(category_id: str) -> str:
    return f"category:{category_id}"


def tag_key(tag_id: str) -> str:
    return f"tag:{tag_id}"


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

class ScoredPost(BaseModel):
    """A raw score assigned to a post by a single strategy."""

    post_id: str
    raw_score: float


class Recommendation(BaseModel):
    """A ranked post in a generated batch."""

    post_id: str
    strategy: StrategyType = Field(
        ..., description="Strategy with the largest weighted contribution"
    )
    raw_score: float = Field(..., description="Raw score from the dominant strategy")
    normalized_score: float = Field(..., ge=0.0, le=1.0, description="Combined score")
    rank: int = Field(..., ge=1)
    published_at: datetime | None = None
    strategy_scores: dict[StrategyType, float] = Field(
        default_factory=dict,
        description="Normalized score from every strategy that surfaced the post",
    )


class RecommendationBatch(BaseModel):
    """One generation result for a user; post ids are unique within it."""

    batch_id: str
    user_id: str
    generated_at: datetime
    requested_types: list[RecommendationType]
    weights: dict[StrategyType, float] = Field(default_factory=dict)
    cold_start: bool = False
    items: list[Recommendation] = Field(default_factory=list)


class FeedbackRecord(BaseModel):
    """Explicit user feedback on a post.  Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    post_id: str
    feedback: Feedback
    reason: str | None = None
    recorded_at: datetime
    strategy: StrategyType | None = Field(
        None, description="Strategy that recommended the post, when known"
    )


class StrategyMetrics(BaseModel):
    count: int
    avg_score: float


class RecommendationMetrics(BaseModel):
    """Aggregate statistics over stored recommendation batches."""

    total: int
    by_strategy: dict[StrategyType, StrategyMetrics] = Field(default_factory=dict)
    overall_avg_score: float | None = None
