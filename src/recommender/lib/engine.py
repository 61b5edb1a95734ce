"""Recommendation engine.

The engine is an explicitly constructed object that owns its collaborators:
the content profile cache, the interaction store, the recommendation store,
the extractors, the combiner and the feedback loop.  The FastAPI app builds
one in its lifespan and keeps it on ``app.state.engine``; tests build their
own with fake collaborators.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Callable, Iterable, Sequence

from ..config import EngineConfig
from ..errors import InvalidArgument, Unavailable
from ..models import (
    Action,
    ContentProfile,
    Feedback,
    FeedbackRecord,
    Interaction,
    Recommendation,
    RecommendationBatch,
    RecommendationMetrics,
    RecommendationType,
    StrategyMetrics,
    StrategyType,
    utcnow,
)
from .combiner import HybridCombiner
from .content import ContentProfileCache, ContentStore
from .extractors import ExtractorContext, build_extractors
from .feedback import FeedbackLoop
from .interactions import InteractionStore
from .recommendations import InMemoryRecommendationStore, RecommendationStore

logger = logging.getLogger(__name__)


def parse_types(types: Iterable[str | RecommendationType] | None) -> list[RecommendationType]:
    """Validate requested types; an empty request means ``hybrid``.

    Raises :class:`InvalidArgument` for unknown values.
    """
    parsed: list[RecommendationType] = []
    for value in types or []:
        try:
            parsed.append(RecommendationType(value))
        except ValueError:
            raise InvalidArgument(f"Unknown recommendation type: {value}") from None
    return parsed or [RecommendationType.HYBRID]


def strategies_for(types: Sequence[RecommendationType]) -> list[StrategyType]:
    """Distinct strategies behind *types*, in declaration order."""
    wanted = {s for t in types for s in t.strategies()}
    return [s for s in StrategyType if s in wanted]


class RecommendationEngine:
    """Generates, stores and learns from personalized recommendations."""

    def __init__(
        self,
        content_store: ContentStore,
        config: EngineConfig | None = None,
        recommendations: RecommendationStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or EngineConfig()
        self.clock = clock
        self.content_store = content_store
        self.profiles = ContentProfileCache(
            content_store,
            ttl=self.config.profile_ttl,
            pool_size=self.config.candidate_pool_size,
            clock=clock,
        )
        self.interactions = InteractionStore(
            self.profiles,
            interest_decay=self.config.interest_decay,
            interest_cap=self.config.interest_cap,
            recent_limit=self.config.recent_interactions_limit,
            declared_limit=self.config.declared_posts_limit,
            declared_weight=self.config.declared_interest_weight,
            clock=clock,
        )
        self.recommendations = recommendations or InMemoryRecommendationStore(
            cooldown=self.config.cooldown
        )
        self.extractors = build_extractors(
            ExtractorContext(
                interactions=self.interactions,
                profiles=self.profiles,
                config=self.config,
                clock=clock,
            )
        )
        self.combiner = HybridCombiner(
            self.extractors,
            self.interactions,
            self.recommendations,
            self.config,
            clock=clock,
        )
        self.feedback = FeedbackLoop(
            self.interactions,
            self.profiles,
            self.recommendations,
            feedback_step=self.config.feedback_step,
            clock=clock,
        )

    # -- generation ----------------------------------------------------------

    async def generate_batch(
        self,
        user_id: str,
        limit: int = 10,
        types: Iterable[str | RecommendationType] | None = None,
        candidate_pool: Sequence[ContentProfile] | None = None,
    ) -> RecommendationBatch:
        """Rank candidates for *user_id* and persist the resulting batch.

        The user's own posts seed their declared interests on the first call.
        The batch is written only once fully assembled.  A failed write is
        logged and the batch is still returned.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")
        requested = parse_types(types)

        if candidate_pool is None:
            try:
                candidate_pool = await self.profiles.candidate_pool()
            except Exception as exc:
                logger.exception("Failed to load the candidate pool")
                raise Unavailable("Content store unavailable") from exc

        try:
            await self.interactions.seed_declared_interests(user_id)
        except Exception:
            logger.exception("Failed to load declared interests for %s", user_id)

        ranking = await self.combiner.rank(
            user_id, limit, strategies_for(requested), candidate_pool
        )
        if ranking.dropped:
            logger.warning(
                "Generated recommendations for %s without %s",
                user_id, ", ".join(s.value for s in ranking.dropped),
            )

        batch = RecommendationBatch(
            batch_id=uuid.uuid4().hex,
            user_id=user_id,
            generated_at=self.clock(),
            requested_types=requested,
            weights=ranking.weights,
            cold_start=ranking.cold_start,
            items=ranking.items,
        )
        await self.store_recommendations(user_id, batch)
        return batch

    async def generate_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        types: Iterable[str | RecommendationType] | None = None,
    ) -> list[Recommendation]:
        batch = await self.generate_batch(user_id, limit, types)
        return batch.items

    async def store_recommendations(self, user_id: str, batch: RecommendationBatch) -> bool:
        """Persist *batch*; returns ``False`` if the store rejected it."""
        if batch.user_id != user_id:
            raise InvalidArgument("Batch belongs to a different user")
        try:
            await self.recommendations.store_batch(batch)
        except Exception:
            logger.exception(
                "Failed to store recommendations for %s; cooldown will miss batch %s",
                user_id, batch.batch_id,
            )
            return False
        return True

    # -- enrichment ----------------------------------------------------------

    async def enrich(
        self, recommendations: Sequence[Recommendation]
    ) -> list[tuple[Recommendation, dict]]:
        """Attach post documents to *recommendations*.

        Lookups run concurrently, at most ``enrich_concurrency`` at a time.
        Entries whose post cannot be fetched are dropped; order is kept.
        """
        semaphore = asyncio.Semaphore(self.config.enrich_concurrency)

        async def fetch(rec: Recommendation) -> dict | None:
            async with semaphore:
                try:
                    return await self.content_store.fetch_post(rec.post_id)
                except Exception:
                    logger.exception("Failed to fetch post %s", rec.post_id)
                    return None

        posts = await asyncio.gather(*(fetch(rec) for rec in recommendations))
        return [(rec, post) for rec, post in zip(recommendations, posts) if post is not None]

    # -- feedback ------------------------------------------------------------

    async def track_interaction(self, user_id: str, post_id: str, action: Action) -> Interaction:
        return await self.feedback.track_interaction(user_id, post_id, action)

    async def record_feedback(
        self,
        user_id: str,
        post_id: str,
        feedback: Feedback,
        reason: str | None = None,
    ) -> FeedbackRecord:
        return await self.feedback.record_feedback(user_id, post_id, feedback, reason)

    # -- metrics -------------------------------------------------------------

    async def get_metrics(self, user_id: str | None = None) -> RecommendationMetrics:
        """Count and average score of stored recommendations per strategy."""
        try:
            batches = await self.recommendations.batches(user_id)
        except Exception as exc:
            logger.exception("Failed to read recommendation batches")
            raise Unavailable("Recommendation store unavailable") from exc

        scores: dict[StrategyType, list[float]] = defaultdict(list)
        for batch in batches:
            for item in batch.items:
                scores[item.strategy].append(item.normalized_score)

        every = [s for values in scores.values() for s in values]
        return RecommendationMetrics(
            total=len(every),
            by_strategy={
                strategy: StrategyMetrics(count=len(values), avg_score=sum(values) / len(values))
                for strategy, values in scores.items()
            },
            overall_avg_score=sum(every) / len(every) if every else None,
        )
