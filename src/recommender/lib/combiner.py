"""Hybrid combiner.

Runs the selected extractors concurrently over one candidate pool and merges
their outputs into a single ranked list:

1. **Exclude** posts authored by the requesting user and posts recommended
   to them within the cooldown window.
2. **Score** with every strategy that has a non-zero weight.  Strategies run
   as concurrent tasks, each bounded by ``strategy_timeout_seconds``.  A
   strategy that fails or times out is logged and dropped; its weight is not
   redistributed.  Only when every strategy fails does the request fail.
3. **Normalize** each strategy's raw scores independently with min-max
   scaling to ``[0, 1]``.  A single candidate, or all-equal scores,
   normalize to 1.
4. **Combine**: a post's score is the sum of ``weight * normalized`` over the
   strategies that surfaced it.  Strategies that did not surface it add 0;
   there is no renormalization against the strategies present.
5. **Rank** by combined score descending, then ``published_at`` descending,
   then ``post_id`` ascending, and truncate to the limit.

Users with fewer than ``cold_start_threshold`` interactions are scored with
the cold-start weight table instead of the default one.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Sequence

from pydantic import BaseModel, Field

from ..config import EngineConfig
from ..errors import Unavailable
from ..models import ContentProfile, Recommendation, ScoredPost, StrategyType, utcnow
from .extractors import SignalExtractor
from .interactions import InteractionStore
from .recommendations import RecommendationStore

logger = logging.getLogger(__name__)

_STRATEGY_ORDER = list(StrategyType)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class CombinedRanking(BaseModel):
    """The output of one combiner run."""

    weights: dict[StrategyType, float]
    cold_start: bool = False
    items: list[Recommendation] = Field(default_factory=list)
    dropped: list[StrategyType] = Field(
        default_factory=list, description="Strategies that failed or timed out"
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize(scored: Sequence[ScoredPost]) -> dict[str, tuple[float, float]]:
    """Min-max normalize raw scores.

    Returns ``post_id -> (raw_score, normalized_score)``.  Duplicate entries
    for a post keep the highest raw score.
    """
    raw: dict[str, float] = {}
    for entry in scored:
        if entry.post_id not in raw or entry.raw_score > raw[entry.post_id]:
            raw[entry.post_id] = entry.raw_score
    if not raw:
        return {}

    low, high = min(raw.values()), max(raw.values())
    if high == low:
        return {pid: (value, 1.0) for pid, value in raw.items()}
    span = high - low
    return {pid: (value, (value - low) / span) for pid, value in raw.items()}


def rank_key(item: Recommendation) -> tuple:
    published = item.published_at.timestamp() if item.published_at else float("-inf")
    return (-item.normalized_score, -published, item.post_id)


# ---------------------------------------------------------------------------
# Combiner
# ---------------------------------------------------------------------------

class HybridCombiner:
    """Weighted, cold-start aware merge of per-strategy scores."""

    def __init__(
        self,
        extractors: dict[StrategyType, SignalExtractor],
        interactions: InteractionStore,
        recommendations: RecommendationStore,
        config: EngineConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.extractors = extractors
        self.interactions = interactions
        self.recommendations = recommendations
        self.config = config
        self.clock = clock

    def select_weights(
        self, user_id: str, strategies: Sequence[StrategyType]
    ) -> tuple[dict[StrategyType, float], bool]:
        """Weights for the requested strategies and whether cold start applied."""
        if len(strategies) == 1:
            return {strategies[0]: 1.0}, False

        default = {s: self.config.default_weights.get(s, 0.0) for s in strategies}
        try:
            count = self.interactions.interaction_count(user_id)
        except Exception as exc:
            raise Unavailable("Interaction store unavailable") from exc
        if count >= self.config.cold_start_threshold:
            return default, False

        cold = {s: self.config.cold_start_weights.get(s, 0.0) for s in strategies}
        if not any(w > 0 for w in cold.values()):
            logger.info(
                "Cold-start weights exclude every requested strategy for %s; using defaults",
                user_id,
            )
            return default, False
        return cold, True

    async def exclusions(self, user_id: str) -> set[str]:
        """Post ids recommended to the user within the cooldown window."""
        since = self.clock() - self.config.cooldown
        try:
            return await self.recommendations.recent_post_ids(user_id, since)
        except Exception as exc:
            logger.exception("Failed to read recent recommendations for %s", user_id)
            raise Unavailable("Recommendation store unavailable") from exc

    async def _run(
        self,
        strategy: StrategyType,
        user_id: str,
        pool: Sequence[ContentProfile],
        k: int,
    ) -> list[ScoredPost] | None:
        extractor = self.extractors[strategy]
        try:
            return await asyncio.wait_for(
                extractor.score(user_id, pool, k),
                timeout=self.config.strategy_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Strategy '%s' exceeded %.2fs for user %s; dropping it",
                strategy.value, self.config.strategy_timeout_seconds, user_id,
            )
        except Exception:
            logger.exception("Strategy '%s' failed for user %s", strategy.value, user_id)
        return None

    async def rank(
        self,
        user_id: str,
        limit: int,
        strategies: Sequence[StrategyType],
        candidate_pool: Sequence[ContentProfile],
    ) -> CombinedRanking:
        weights, cold_start = self.select_weights(user_id, strategies)

        excluded = await self.exclusions(user_id)
        pool = [
            p for p in candidate_pool
            if p.author_id != user_id and p.post_id not in excluded
        ]
        ranking = CombinedRanking(weights=weights, cold_start=cold_start)
        if not pool:
            logger.info("Empty candidate pool for user %s", user_id)
            return ranking

        active = [s for s in _STRATEGY_ORDER if weights.get(s, 0.0) > 0]
        k = limit * self.config.candidate_multiplier
        results = await asyncio.gather(
            *(self._run(strategy, user_id, pool, k) for strategy in active)
        )

        ranking.dropped = [s for s, scored in zip(active, results) if scored is None]
        if active and len(ranking.dropped) == len(active):
            raise Unavailable("All recommendation strategies failed")

        published = {p.post_id: p.published_at for p in pool}
        per_post: dict[str, dict[StrategyType, tuple[float, float]]] = {}
        for strategy, scored in zip(active, results):
            if scored is None:
                continue
            for post_id, (raw, norm) in normalize(scored).items():
                if post_id in published:
                    per_post.setdefault(post_id, {})[strategy] = (raw, norm)

        items: list[Recommendation] = []
        for post_id, by_strategy in per_post.items():
            contributions = {s: weights[s] * norm for s, (_, norm) in by_strategy.items()}
            dominant = max(
                by_strategy,
                key=lambda s: (contributions[s], -_STRATEGY_ORDER.index(s)),
            )
            combined = min(1.0, max(0.0, sum(contributions.values())))
            items.append(
                Recommendation(
                    post_id=post_id,
                    strategy=dominant,
                    raw_score=by_strategy[dominant][0],
                    normalized_score=combined,
                    rank=1,
                    published_at=published[post_id],
                    strategy_scores={s: norm for s, (_, norm) in by_strategy.items()},
                )
            )

        items.sort(key=rank_key)
        ranking.items = [
            item.model_copy(update={"rank": position})
            for position, item in enumerate(items[:limit], start=1)
        ]
        return ranking
