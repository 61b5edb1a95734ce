"""Trending extractor.

Scores posts by the recency-weighted velocity of their view and like events
inside ``trending_window``:

* every event in the window contributes its action weight, halved for each
  ``trending_half_life`` of age, so a burst of recent activity beats the
  same activity spread over last week;
* the sum is divided by the window length in days, giving events per day.

The score is the same for every user.  Ties are broken by the raw number of
events in the window, then by the more recent ``published_at``.
"""

import logging
from collections import Counter, defaultdict
from typing import Sequence

from ...models import Action, ContentProfile, ScoredPost, StrategyType
from .base import SignalExtractor, top_scored

logger = logging.getLogger(__name__)

# Only these actions count towards trending velocity.
TRENDING_ACTIONS = {Action.VIEW, Action.LIKE}


class TrendingExtractor(SignalExtractor):
    """Posts gaining views and likes fastest right now."""

    strategy = StrategyType.TRENDING

    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        config = self.context.config
        now = self.context.clock()
        window_days = config.trending_window.total_seconds() / 86400
        half_life = config.trending_half_life.total_seconds()

        candidates = {p.post_id: p for p in candidate_pool}
        velocity: dict[str, float] = defaultdict(float)
        counts: Counter[str] = Counter()

        for event in self.context.interactions.interactions_since(now - config.trending_window):
            if event.post_id not in candidates or event.action not in TRENDING_ACTIONS:
                continue
            age = max(0.0, (now - event.timestamp).total_seconds())
            velocity[event.post_id] += event.weight * 0.5 ** (age / half_life)
            counts[event.post_id] += 1

        scores = {pid: v / window_days for pid, v in velocity.items()}

        def sort_key(post_id: str) -> tuple:
            published = candidates[post_id].published_at.timestamp()
            return (-scores[post_id], -counts[post_id], -published, post_id)

        return top_scored(scores, limit, sort_key)
