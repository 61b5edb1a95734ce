"""Similar-content extractor.

Finds candidates that share taxonomy with what the user recently engaged
with:

1. Take the user's distinct recently interacted posts (``similar_window``,
   at most ``similar_source_limit``), each weighted by its strongest action.
2. Compare every candidate against each source post with a weighted
   Jaccard overlap in which shared tags count ``tag_weight`` and a shared
   category counts ``category_weight``.
3. Average the overlaps by source weight.

Posts the user has already interacted with are never returned.
"""

import logging
from typing import Sequence

from ...models import ContentProfile, ScoredPost, StrategyType
from .base import SignalExtractor, top_scored

logger = logging.getLogger(__name__)


def weighted_jaccard(
    a: ContentProfile,
    b: ContentProfile,
    tag_weight: float,
    category_weight: float,
) -> float:
    """Overlap of two posts' tags and categories in ``[0, 1]``."""
    shared = tag_weight * len(a.tag_ids & b.tag_ids)
    union = tag_weight * len(a.tag_ids | b.tag_ids)

    categories = {c for c in (a.category_id, b.category_id) if c}
    union += category_weight * len(categories)
    if a.category_id and a.category_id == b.category_id:
        shared += category_weight

    if union == 0:
        return 0.0
    return shared / union


class SimilarContentExtractor(SignalExtractor):
    """Posts resembling the ones the user recently engaged with."""

    strategy = StrategyType.SIMILAR_CONTENT

    def source_weights(self, user_id: str) -> dict[str, float]:
        """Recent distinct posts of *user_id*, each weighted by its strongest action."""
        config = self.context.config
        weights: dict[str, float] = {}
        for interaction in self.context.interactions.get_recent_interactions(
            user_id, config.similar_window
        ):
            if interaction.post_id not in weights:
                if len(weights) >= config.similar_source_limit:
                    continue
                weights[interaction.post_id] = interaction.weight
            else:
                weights[interaction.post_id] = max(weights[interaction.post_id], interaction.weight)
        return weights

    async def score(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        # Source profiles may need a content store fetch; load them on the loop.
        await self.context.profiles.get_many(sorted(self.source_weights(user_id)))
        return await super().score(user_id, candidate_pool, limit)

    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        config = self.context.config
        source_weights = self.source_weights(user_id)
        if not source_weights:
            logger.info("No recent interactions for user %s", user_id)
            return []

        sources: dict[str, ContentProfile] = {}
        for pid in sorted(source_weights):
            profile = self.context.profiles.cached(pid)
            if profile is not None:
                sources[pid] = profile
        if not sources:
            return []
        total_weight = sum(source_weights[pid] for pid in sources)
        seen = self.context.interactions.interacted_post_ids(user_id)

        scores: dict[str, float] = {}
        for candidate in candidate_pool:
            if candidate.post_id in seen:
                continue
            overlap = sum(
                source_weights[pid]
                * weighted_jaccard(source, candidate, config.tag_weight, config.category_weight)
                for pid, source in sources.items()
            )
            scores[candidate.post_id] = overlap / total_weight

        return top_scored(scores, limit)
