"""Recommendation store.

Persists every generated :class:`RecommendationBatch` so that

* the next generation call can suppress posts recommended within the
  cooldown window, and
* a later interaction or feedback on a post can be attributed to the
  strategy that recommended it.

Each stored item moves through a forward-only lifecycle::

    generated -> seen -> interacted -> fed_back

An item whose batch is older than the cooldown window reads as ``expired``.
Expired items may be recommended again, but their records are kept until
the storage side purges them.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta

from ..config import COOLDOWN
from ..models import ItemState, Recommendation, RecommendationBatch

logger = logging.getLogger(__name__)

_ORDER = [ItemState.GENERATED, ItemState.SEEN, ItemState.INTERACTED, ItemState.FED_BACK]


class RecommendationStore(ABC):
    """Storage contract for recommendation batches."""

    @abstractmethod
    async def store_batch(self, batch: RecommendationBatch) -> None:
        ...

    @abstractmethod
    async def recent_post_ids(self, user_id: str, since: datetime) -> set[str]:
        """Post ids recommended to *user_id* in batches generated at or after *since*."""
        ...

    @abstractmethod
    async def find_item(
        self, user_id: str, post_id: str
    ) -> tuple[RecommendationBatch, Recommendation] | None:
        """The most recent stored batch and item recommending *post_id*."""
        ...

    @abstractmethod
    async def item_state(self, user_id: str, post_id: str, now: datetime) -> ItemState | None:
        ...

    @abstractmethod
    async def advance(
        self, user_id: str, post_id: str, state: ItemState, now: datetime
    ) -> ItemState | None:
        """Move the latest item for *post_id* forward to *state*.

        Returns the item's resulting state, or ``None`` when the post was
        never recommended to the user.
        """
        ...

    @abstractmethod
    async def batches(self, user_id: str | None = None) -> list[RecommendationBatch]:
        ...

    @abstractmethod
    async def purge_before(self, cutoff: datetime) -> int:
        """Drop batches generated before *cutoff*; returns how many."""
        ...


class InMemoryRecommendationStore(RecommendationStore):
    """Process-local recommendation store."""

    def __init__(self, cooldown: timedelta = COOLDOWN):
        self._cooldown = cooldown
        self._batches: dict[str, list[RecommendationBatch]] = defaultdict(list)
        self._states: dict[tuple[str, str], ItemState] = {}

    async def store_batch(self, batch: RecommendationBatch) -> None:
        self._batches[batch.user_id].append(batch)
        for item in batch.items:
            self._states[(batch.batch_id, item.post_id)] = ItemState.GENERATED
        logger.debug(
            "Stored batch %s with %d items for %s",
            batch.batch_id, len(batch.items), batch.user_id,
        )

    async def recent_post_ids(self, user_id: str, since: datetime) -> set[str]:
        return {
            item.post_id
            for batch in self._batches.get(user_id, [])
            if batch.generated_at >= since
            for item in batch.items
        }

    async def find_item(
        self, user_id: str, post_id: str
    ) -> tuple[RecommendationBatch, Recommendation] | None:
        for batch in reversed(self._batches.get(user_id, [])):
            for item in batch.items:
                if item.post_id == post_id:
                    return batch, item
        return None

    def _current(self, batch: RecommendationBatch, post_id: str, now: datetime) -> ItemState:
        if batch.generated_at + self._cooldown <= now:
            return ItemState.EXPIRED
        return self._states[(batch.batch_id, post_id)]

    async def item_state(self, user_id: str, post_id: str, now: datetime) -> ItemState | None:
        found = await self.find_item(user_id, post_id)
        if found is None:
            return None
        return self._current(found[0], post_id, now)

    async def advance(
        self, user_id: str, post_id: str, state: ItemState, now: datetime
    ) -> ItemState | None:
        if state not in _ORDER:
            raise ValueError(f"Cannot advance an item to {state.value}")

        found = await self.find_item(user_id, post_id)
        if found is None:
            return None
        batch, _ = found

        current = self._current(batch, post_id, now)
        if current is ItemState.EXPIRED:
            return current
        if _ORDER.index(state) > _ORDER.index(current):
            self._states[(batch.batch_id, post_id)] = state
            return state
        return current

    async def batches(self, user_id: str | None = None) -> list[RecommendationBatch]:
        if user_id is not None:
            return list(self._batches.get(user_id, []))
        return [batch for user_batches in self._batches.values() for batch in user_batches]

    async def purge_before(self, cutoff: datetime) -> int:
        removed = 0
        for user_id, user_batches in self._batches.items():
            kept = []
            for batch in user_batches:
                if batch.generated_at < cutoff:
                    removed += 1
                    for item in batch.items:
                        self._states.pop((batch.batch_id, item.post_id), None)
                else:
                    kept.append(batch)
            self._batches[user_id] = kept
        return removed
