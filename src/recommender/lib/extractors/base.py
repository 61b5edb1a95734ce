"""Base abstraction for signal extractors.

Each extractor implements one scoring strategy.  Its ``score`` coroutine
receives the requesting user, the candidate pool and a result limit, and
returns ``ScoredPost`` entries ordered by descending raw score.  Extractors
only return posts they scored positively; a post an extractor does not
return contributes nothing for that strategy.

Given the same store state, candidate pool and clock, ``score`` must return
the same list, so every ordering has a total tie-break ending in ``post_id``.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from ...config import EngineConfig
from ...models import ContentProfile, ScoredPost, StrategyType, utcnow
from ..content import ContentProfileCache
from ..interactions import InteractionStore


# ---------------------------------------------------------------------------
# Shared state
# ---------------------------------------------------------------------------

@dataclass
class ExtractorContext:
    """Collaborators every extractor reads from."""

    interactions: InteractionStore
    profiles: ContentProfileCache
    config: EngineConfig = field(default_factory=EngineConfig)
    clock: Callable[[], datetime] = utcnow


def top_scored(
    scores: dict[str, float],
    limit: int,
    sort_key: Callable[[str], tuple] | None = None,
) -> list[ScoredPost]:
    """Keep positive scores, order them and truncate to *limit*.

    The default order is score descending, then ``post_id`` ascending.
    """
    if sort_key is None:
        def sort_key(post_id: str) -> tuple:
            return (-scores[post_id], post_id)

    ranked = sorted((pid for pid, s in scores.items() if s > 0), key=sort_key)
    return [ScoredPost(post_id=pid, raw_score=scores[pid]) for pid in ranked[:limit]]


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class SignalExtractor(ABC):
    """Abstract base class for scoring strategies.

    Subclasses set ``strategy`` and implement the synchronous ``rank``.
    ``score`` runs ``rank`` in a worker thread, so strategies score
    concurrently and the combiner's time limit can cut a slow one off
    without waiting for it.  A strategy that timed out keeps its thread
    until ``rank`` returns; the result is discarded.
    """

    strategy: StrategyType

    def __init__(self, context: ExtractorContext):
        self.context = context

    @property
    def name(self) -> str:
        return self.strategy.value

    async def score(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        """Score candidate posts for the given user.

        Parameters
        ----------
        user_id:
            The requesting user.
        candidate_pool:
            Content profiles eligible for recommendation.
        limit:
            Maximum number of scored posts to return.

        Returns
        -------
        list[ScoredPost]
        """
        return await asyncio.to_thread(self.rank, user_id, list(candidate_pool), limit)

    @abstractmethod
    def rank(
        self,
        user_id: str,
        candidate_pool: Sequence[ContentProfile],
        limit: int,
    ) -> list[ScoredPost]:
        """Score *candidate_pool* synchronously; called from a worker thread."""
        ...
