"""Collaborative-filtering extractor.

Recommends what similar users liked:

1. Find other users whose interacted posts overlap the target's in at least
   ``cf_min_overlap`` posts; a single shared interaction is treated as noise.
2. Their similarity is the Jaccard index of the two interacted-post sets.
   Only the ``cf_neighbour_limit`` most similar neighbours are kept.
3. Every post a neighbour liked or shared, that the target has not
   interacted with, scores the sum of the similarities of the neighbours
   who liked it.
"""

import logging
from collections import defaultdict
from typing import Sequence

from ...models import Action, ContentProfile, ScoredPost, StrategyType
from .base import SignalExtractor, top_scored

logger = logging.getLogger(__name__)

POSITIVE_ACTIONS = {Action.LIKE, Action.SHARE}


class CollaborativeFilteringExtractor(SignalExtractor):
    """Posts liked by users with overlapping interaction histories."""

    strategy = StrategyType.COLLABORATIVE_FILTERING

    def similar_users(self, user_id: str) -> list[tuple[str, float]]:
        """Neighbours of *user_id* as ``(user_id, similarity)``, most similar first."""
        config = self.context.config
        interactions = self.context.interactions

        target = interactions.interacted_post_ids(user_id)
        if not target:
            return []

        neighbours: list[tuple[str, float]] = []
        for other in interactions.users():
            if other == user_id:
                continue
            theirs = interactions.interacted_post_ids(other)
            overlap = len(target & theirs)
            if overlap < config.cf_min_overlap:
                continue
            neighbours.append((other, overlap / len(target | theirs)))

        neighbours.sort(key=lambda n: (-n[1], n[0]))
        return neighbours[: config.cf_neighbour_limit]

    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        neighbours = self.similar_users(user_id)
        if not neighbours:
            logger.info("No similar users for user %s", user_id)
            return []

        interactions = self.context.interactions
        candidates = {p.post_id for p in candidate_pool}
        seen = interactions.interacted_post_ids(user_id)

        scores: dict[str, float] = defaultdict(float)
        for other, similarity in neighbours:
            for post_id in interactions.post_ids_with(other, POSITIVE_ACTIONS):
                if post_id in candidates and post_id not in seen:
                    scores[post_id] += similarity

        return top_scored(scores, limit)
