"""User-interest extractor.

Cosine similarity between the user's interest vector and a candidate's
indicator vector (1.0 for its category and for each of its tags).  An empty
interest vector, or a post with no category and no tags, scores 0.
"""

import math
from typing import Sequence

from ...models import ContentProfile, ScoredPost, StrategyType
from .base import SignalExtractor, top_scored


def interest_similarity(interest_vector: dict[str, float], keys: list[str]) -> float:
    """Cosine of *interest_vector* against a 0/1 vector over *keys*."""
    if not interest_vector or not keys:
        return 0.0
    norm = math.sqrt(sum(v * v for v in interest_vector.values()))
    if norm == 0:
        return 0.0
    dot = sum(interest_vector.get(key, 0.0) for key in keys)
    return dot / (norm * math.sqrt(len(keys)))


class UserInterestExtractor(SignalExtractor):
    """Posts matching the user's declared and inferred interests."""

    strategy = StrategyType.USER_INTEREST

    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        vector = self.context.interactions.get_profile(user_id).interest_vector
        scores = {
            candidate.post_id: interest_similarity(vector, candidate.feature_keys())
            for candidate in candidate_pool
        }
        return top_scored(scores, limit)
