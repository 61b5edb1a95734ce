"""Engine configuration.

Tuning knobs live as module-level constants so their defaults are visible in
one place.  :class:`EngineConfig` bundles them for an engine instance and
:func:`load_config` lets a deployment override a few of them through the
environment (``RECOMMENDER_*`` variables).
"""

import logging
import os
from datetime import timedelta

from pydantic import BaseModel, Field

from .models import StrategyType

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Default contribution of each strategy to a hybrid score.  Sums to 1.0.
DEFAULT_WEIGHTS: dict[StrategyType, float] = {
    StrategyType.TRENDING: 0.15,
    StrategyType.SIMILAR_CONTENT: 0.20,
    StrategyType.USER_INTEREST: 0.25,
    StrategyType.COLLABORATIVE_FILTERING: 0.25,
    StrategyType.CONTENT_BASED: 0.15,
}

# Weights used for users with too little history to personalise for.
COLD_START_WEIGHTS: dict[StrategyType, float] = {
    StrategyType.TRENDING: 0.5,
    StrategyType.SIMILAR_CONTENT: 0.0,
    StrategyType.USER_INTEREST: 0.0,
    StrategyType.COLLABORATIVE_FILTERING: 0.0,
    StrategyType.CONTENT_BASED: 0.5,
}

# Users with fewer recorded interactions than this get COLD_START_WEIGHTS.
COLD_START_THRESHOLD = 3

# A post recommended within this window is not recommended again.
COOLDOWN = timedelta(hours=24)

# Per-strategy time limit; a slower strategy is dropped from the request.
STRATEGY_TIMEOUT_SECONDS = 2.0

# Each strategy returns limit * CANDIDATE_MULTIPLIER candidates before combining.
CANDIDATE_MULTIPLIER = 3

# Interest vector: existing entries are multiplied by INTEREST_DECAY before a
# new interaction is added, and every entry is clamped to +/- INTEREST_CAP.
INTEREST_DECAY = 0.95
INTEREST_CAP = 10.0

# Fixed adjustment applied by explicit feedback.
FEEDBACK_STEP = 1.0

# Declared interest: each of the user's own most recent posts (at most
# DECLARED_POSTS_LIMIT) credits its category and tags once with
# DECLARED_INTEREST_WEIGHT.
DECLARED_POSTS_LIMIT = 50
DECLARED_INTEREST_WEIGHT = 1.0

# Bounded number of interactions kept on UserProfile.recent_interactions.
RECENT_INTERACTIONS_LIMIT = 50

# Trending looks at view/like events in this window, halving an event's
# weight every TRENDING_HALF_LIFE.
TRENDING_WINDOW = timedelta(days=7)
TRENDING_HALF_LIFE = timedelta(days=2)

# Similar-content compares candidates against this many recent posts drawn
# from SIMILAR_WINDOW.
SIMILAR_SOURCE_LIMIT = 10
SIMILAR_WINDOW = timedelta(days=30)
TAG_WEIGHT = 2.0
CATEGORY_WEIGHT = 1.0

# Collaborative filtering ignores neighbours sharing fewer posts than this.
CF_MIN_OVERLAP = 2
CF_NEIGHBOUR_LIMIT = 20

# Content-based freshness halves every FRESHNESS_HALF_LIFE.
FRESHNESS_HALF_LIFE = timedelta(days=3)

# Content profiles are re-derived from the content store after this long.
PROFILE_TTL = timedelta(minutes=10)
CANDIDATE_POOL_SIZE = 500

# Maximum concurrent content lookups while enriching a result list.
ENRICH_CONCURRENCY = 8


class EngineConfig(BaseModel):
    """Configuration owned by a :class:`RecommendationEngine` instance."""

    default_weights: dict[StrategyType, float] = Field(
        default_factory=lambda: dict(DEFAULT_WEIGHTS)
    )
    cold_start_weights: dict[StrategyType, float] = Field(
        default_factory=lambda: dict(COLD_START_WEIGHTS)
    )
    cold_start_threshold: int = Field(COLD_START_THRESHOLD, ge=0)
    cooldown: timedelta = COOLDOWN
    strategy_timeout_seconds: float = Field(STRATEGY_TIMEOUT_SECONDS, gt=0)
    candidate_multiplier: int = Field(CANDIDATE_MULTIPLIER, ge=1)
    interest_decay: float = Field(INTEREST_DECAY, gt=0, le=1)
    interest_cap: float = Field(INTEREST_CAP, gt=0)
    feedback_step: float = Field(FEEDBACK_STEP, gt=0)
    declared_posts_limit: int = Field(DECLARED_POSTS_LIMIT, ge=0)
    declared_interest_weight: float = Field(DECLARED_INTEREST_WEIGHT, ge=0)
    recent_interactions_limit: int = Field(RECENT_INTERACTIONS_LIMIT, ge=1)
    trending_window: timedelta = TRENDING_WINDOW
    trending_half_life: timedelta = TRENDING_HALF_LIFE
    similar_source_limit: int = Field(SIMILAR_SOURCE_LIMIT, ge=1)
    similar_window: timedelta = SIMILAR_WINDOW
    tag_weight: float = TAG_WEIGHT
    category_weight: float = CATEGORY_WEIGHT
    cf_min_overlap: int = Field(CF_MIN_OVERLAP, ge=1)
    cf_neighbour_limit: int = Field(CF_NEIGHBOUR_LIMIT, ge=1)
    freshness_half_life: timedelta = FRESHNESS_HALF_LIFE
    profile_ttl: timedelta = PROFILE_TTL
    candidate_pool_size: int = Field(CANDIDATE_POOL_SIZE, ge=1)
    enrich_concurrency: int = Field(ENRICH_CONCURRENCY, ge=1)


def _env_number(name: str, cast):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", name, raw)
        return None


def load_config() -> EngineConfig:
    """Build an :class:`EngineConfig`, applying environment overrides."""
    overrides: dict = {}

    cooldown_hours = _env_number("RECOMMENDER_COOLDOWN_HOURS", float)
    if cooldown_hours is not None:
        overrides["cooldown"] = timedelta(hours=cooldown_hours)

    timeout = _env_number("RECOMMENDER_STRATEGY_TIMEOUT_SECONDS", float)
    if timeout is not None:
        overrides["strategy_timeout_seconds"] = timeout

    threshold = _env_number("RECOMMENDER_COLD_START_THRESHOLD", int)
    if threshold is not None:
        overrides["cold_start_threshold"] = threshold

    concurrency = _env_number("RECOMMENDER_ENRICH_CONCURRENCY", int)
    if concurrency is not None:
        overrides["enrich_concurrency"] = concurrency

    return EngineConfig(**overrides)
