"""Content-based extractor.

A static quality score that needs no user history, which makes it the main
cold-start fallback.  It blends three signals:

* **author engagement** – mean engagement score of the author's posts;
* **view velocity** – views per day since publication;
* **freshness** – halves every ``freshness_half_life``.

The engagement signals are ``log1p``-damped so a single viral author or
post cannot drown out freshness.
"""

import math
from typing import Sequence

from ...models import ContentProfile, ScoredPost, StrategyType
from .base import SignalExtractor, top_scored

# Blend of the three signals.
AUTHOR_FACTOR = 0.4
VELOCITY_FACTOR = 0.3
FRESHNESS_FACTOR = 0.3


class ContentBasedExtractor(SignalExtractor):
    """Fresh posts from engaging authors that are drawing views."""

    strategy = StrategyType.CONTENT_BASED

    def author_engagement(self, author_id: str | None) -> float:
        if not author_id:
            return 0.0
        posts = self.context.profiles.by_author(author_id)
        if not posts:
            return 0.0
        return sum(p.engagement_score for p in posts) / len(posts)

    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        now = self.context.clock()
        half_life_days = self.context.config.freshness_half_life.total_seconds() / 86400

        author_cache: dict[str | None, float] = {}
        scores: dict[str, float] = {}
        for candidate in candidate_pool:
            if candidate.author_id not in author_cache:
                author_cache[candidate.author_id] = self.author_engagement(candidate.author_id)

            age_days = max(0.0, (now - candidate.published_at).total_seconds() / 86400)
            velocity = candidate.view_count / max(1.0, age_days)
            freshness = 0.5 ** (age_days / half_life_days)

            scores[candidate.post_id] = (
                AUTHOR_FACTOR * math.log1p(author_cache[candidate.author_id])
                + VELOCITY_FACTOR * math.log1p(velocity)
                + FRESHNESS_FACTOR * freshness
            )

        return top_scored(scores, limit)
