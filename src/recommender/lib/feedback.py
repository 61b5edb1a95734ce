"""Feedback loop.

Closes the loop between what was recommended and what the user did with it:

* ``track_interaction`` records an interaction in the interaction store
  (every call is recorded; repeated identical calls are not collapsed) and
  moves the matching recommendation item to ``seen`` or ``interacted``.
* ``record_feedback`` keeps an immutable :class:`FeedbackRecord` and nudges
  the interest vector entries for the post's category and tags by a fixed
  step, up for positive feedback and down for negative.

Attribution to stored batches is best effort: a recommendation store
failure is logged and never fails the interaction or feedback itself.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable

from ..config import FEEDBACK_STEP
from ..errors import NotFound
from ..models import (
    Action,
    Feedback,
    FeedbackRecord,
    Interaction,
    ItemState,
    StrategyType,
    utcnow,
)
from .content import ContentProfileCache
from .interactions import InteractionStore
from .recommendations import RecommendationStore

logger = logging.getLogger(__name__)


def state_for_action(action: Action) -> ItemState:
    return ItemState.SEEN if action is Action.VIEW else ItemState.INTERACTED


class FeedbackLoop:
    """Records interactions and explicit feedback."""

    def __init__(
        self,
        interactions: InteractionStore,
        profiles: ContentProfileCache,
        recommendations: RecommendationStore,
        feedback_step: float = FEEDBACK_STEP,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.interactions = interactions
        self.profiles = profiles
        self.recommendations = recommendations
        self.feedback_step = feedback_step
        self.clock = clock
        self._records: dict[str, list[FeedbackRecord]] = defaultdict(list)

    async def _attribute(
        self, user_id: str, post_id: str, state: ItemState
    ) -> StrategyType | None:
        """Advance the recommended item for *post_id*; return its strategy."""
        try:
            found = await self.recommendations.find_item(user_id, post_id)
            if found is None:
                return None
            await self.recommendations.advance(user_id, post_id, state, self.clock())
        except Exception:
            logger.exception("Failed to attribute %s on %s for %s", state.value, post_id, user_id)
            return None
        return found[1].strategy

    async def track_interaction(
        self, user_id: str, post_id: str, action: Action
    ) -> Interaction:
        interaction = await self.interactions.record_interaction(user_id, post_id, action)
        strategy = await self._attribute(user_id, post_id, state_for_action(action))
        if strategy is not None:
            logger.info(
                "User %s %s recommended post %s (strategy %s)",
                user_id, action.value, post_id, strategy.value,
            )
        return interaction

    async def record_feedback(
        self,
        user_id: str,
        post_id: str,
        feedback: Feedback,
        reason: str | None = None,
    ) -> FeedbackRecord:
        """Store feedback and apply a bounded interest adjustment.

        Raises :class:`NotFound` if the post has no content profile.
        """
        content = await self.profiles.get(post_id)
        if content is None:
            raise NotFound(f"No content profile for post {post_id}")

        strategy = await self._attribute(user_id, post_id, ItemState.FED_BACK)
        record = FeedbackRecord(
            user_id=user_id,
            post_id=post_id,
            feedback=feedback,
            reason=reason,
            recorded_at=self.clock(),
            strategy=strategy,
        )
        self._records[user_id].append(record)

        delta = self.feedback_step if feedback is Feedback.POSITIVE else -self.feedback_step
        await self.interactions.adjust_interests(user_id, content.feature_keys(), delta)

        logger.info(
            "Recorded %s feedback from %s on %s%s",
            feedback.value, user_id, post_id,
            f" ({reason})" if reason else "",
        )
        return record

    def feedback_for(self, user_id: str) -> list[FeedbackRecord]:
        return list(self._records.get(user_id, []))
