"""Interaction store: the append-only interaction log and user profiles.

Every recorded interaction credits the interacted post's category and tags
in the user's interest vector.  Existing entries are first multiplied by
``interest_decay`` so recent signal dominates without discarding history,
and every entry is clamped to ``[-interest_cap, interest_cap]``.

The update is read-decay-add, so writers for the same user are serialized
with a per-user :class:`asyncio.Lock`.  Different users never contend.
Extractors read the store from worker threads, so the read helpers iterate
over copies of the shared containers.

A user's own posts seed the vector once as declared interest, next to the
interest inferred from interactions.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Iterable

from ..config import (
    DECLARED_INTEREST_WEIGHT,
    DECLARED_POSTS_LIMIT,
    INTEREST_CAP,
    INTEREST_DECAY,
    RECENT_INTERACTIONS_LIMIT,
)
from ..errors import NotFound
from ..models import Action, Interaction, UserProfile, utcnow
from .content import ContentProfileCache

logger = logging.getLogger(__name__)


def clamp(value: float, bound: float) -> float:
    return max(-bound, min(bound, value))


class InteractionStore:
    """In-process interaction log and interest profiles."""

    def __init__(
        self,
        profiles: ContentProfileCache,
        interest_decay: float = INTEREST_DECAY,
        interest_cap: float = INTEREST_CAP,
        recent_limit: int = RECENT_INTERACTIONS_LIMIT,
        declared_limit: int = DECLARED_POSTS_LIMIT,
        declared_weight: float = DECLARED_INTEREST_WEIGHT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._profiles = profiles
        self._decay = interest_decay
        self._cap = interest_cap
        self._recent_limit = recent_limit
        self._declared_limit = declared_limit
        self._declared_weight = declared_weight
        self._clock = clock
        self._log: dict[str, list[Interaction]] = defaultdict(list)
        self._vectors: dict[str, dict[str, float]] = defaultdict(dict)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._seeded: set[str] = set()

    # -- writes --------------------------------------------------------------

    async def record_interaction(
        self, user_id: str, post_id: str, action: Action
    ) -> Interaction:
        """Append an interaction and fold it into the user's interest vector.

        Raises :class:`NotFound` if the post has no content profile.
        """
        content = await self._profiles.get(post_id)
        if content is None:
            raise NotFound(f"No content profile for post {post_id}")

        async with self._locks[user_id]:
            interaction = Interaction(
                user_id=user_id,
                post_id=post_id,
                action=action,
                weight=action.weight,
                timestamp=self._clock(),
            )
            self._log[user_id].append(interaction)

            vector = self._vectors[user_id]
            for key in vector:
                vector[key] *= self._decay
            for key in content.feature_keys():
                vector[key] = clamp(vector.get(key, 0.0) + interaction.weight, self._cap)

        logger.debug("Recorded %s of %s by %s", action.value, post_id, user_id)
        return interaction

    async def adjust_interests(
        self, user_id: str, keys: Iterable[str], delta: float
    ) -> dict[str, float]:
        """Add *delta* to each of *keys* without decay, clamped to the cap."""
        async with self._locks[user_id]:
            vector = self._vectors[user_id]
            for key in keys:
                vector[key] = clamp(vector.get(key, 0.0) + delta, self._cap)
            return dict(vector)

    async def seed_declared_interests(self, user_id: str) -> bool:
        """Credit the categories and tags of the user's own posts, once per user.

        Declared interest is added without decay and clamped like any other
        update.  It does not count as an interaction.  Returns ``False`` when
        the user was already seeded.
        """
        if user_id in self._seeded:
            return False
        authored = await self._profiles.authored_by(user_id, self._declared_limit)

        async with self._locks[user_id]:
            if user_id in self._seeded:
                return False
            vector = self._vectors[user_id]
            for profile in authored:
                for key in profile.feature_keys():
                    vector[key] = clamp(vector.get(key, 0.0) + self._declared_weight, self._cap)
            self._seeded.add(user_id)

        logger.debug("Seeded %s from %d authored posts", user_id, len(authored))
        return True

    # -- reads ---------------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile:
        """Current profile for *user_id*; an empty profile for unseen users."""
        log = self._log.get(user_id, [])
        recent = list(reversed(log[-self._recent_limit:]))
        return UserProfile(
            user_id=user_id,
            interest_vector=dict(self._vectors.get(user_id, {})),
            recent_interactions=recent,
            interaction_count=len(log),
        )

    def get_recent_interactions(
        self, user_id: str, window: timedelta
    ) -> list[Interaction]:
        """The user's interactions within *window*, most recent first."""
        cutoff = self._clock() - window
        return [
            interaction
            for interaction in reversed(list(self._log.get(user_id, [])))
            if interaction.timestamp >= cutoff
        ]

    def interaction_count(self, user_id: str) -> int:
        return len(self._log.get(user_id, []))

    def interacted_post_ids(self, user_id: str) -> set[str]:
        return {i.post_id for i in self._log.get(user_id, [])}

    def post_ids_with(self, user_id: str, actions: set[Action]) -> set[str]:
        return {i.post_id for i in self._log.get(user_id, []) if i.action in actions}

    def interactions_since(self, cutoff: datetime) -> list[Interaction]:
        """Every user's interactions at or after *cutoff*."""
        return [
            interaction
            for log in list(self._log.values())
            for interaction in list(log)
            if interaction.timestamp >= cutoff
        ]

    def users(self) -> list[str]:
        return sorted(user_id for user_id, log in list(self._log.items()) if log)
