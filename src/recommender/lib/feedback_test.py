"""Tests for interaction tracking and explicit feedback."""

import pytest

from ..errors import NotFound
from ..models import Action, Feedback, ItemState, StrategyType


@pytest.fixture
def posts(content_store):
    content_store.add("p1", category_id="c1", tag_ids=("t1",))
    content_store.add("p2", category_id="c1")
    content_store.add("p3", category_id="c2")


class FailingRecommendationStore:
    """Stands in for a recommendation store whose backend is down."""

    async def find_item(self, user_id, post_id):
        raise RuntimeError("store down")


class TestTrackInteraction:
    @pytest.mark.asyncio
    async def test_records_every_call(self, engine, posts):
        await engine.track_interaction("u1", "p1", Action.VIEW)
        await engine.track_interaction("u1", "p1", Action.VIEW)

        assert engine.interactions.interaction_count("u1") == 2

    @pytest.mark.asyncio
    async def test_advances_recommended_item(self, engine, posts, clock):
        batch = await engine.generate_batch("u1", limit=3)
        post_id = batch.items[0].post_id

        await engine.track_interaction("u1", post_id, Action.VIEW)
        assert await engine.recommendations.item_state("u1", post_id, clock()) == ItemState.SEEN

        await engine.track_interaction("u1", post_id, Action.LIKE)
        assert (
            await engine.recommendations.item_state("u1", post_id, clock())
            == ItemState.INTERACTED
        )

    @pytest.mark.asyncio
    async def test_unknown_post_raises_not_found(self, engine, posts):
        with pytest.raises(NotFound):
            await engine.track_interaction("u1", "missing", Action.VIEW)

    @pytest.mark.asyncio
    async def test_attribution_failure_is_not_fatal(self, engine, posts):
        engine.feedback.recommendations = FailingRecommendationStore()

        interaction = await engine.track_interaction("u1", "p1", Action.CLICK)

        assert interaction.weight == 2.0
        assert engine.interactions.interaction_count("u1") == 1


class TestRecordFeedback:
    @pytest.mark.asyncio
    async def test_positive_feedback_raises_interests(self, engine, posts):
        record = await engine.record_feedback("u1", "p1", Feedback.POSITIVE, reason="great")

        vector = engine.interactions.get_profile("u1").interest_vector
        assert vector == {"category:c1": 1.0, "tag:t1": 1.0}
        assert record.reason == "great"
        assert record.strategy is None

    @pytest.mark.asyncio
    async def test_negative_feedback_lowers_interests(self, engine, posts):
        await engine.track_interaction("u1", "p2", Action.LIKE)
        await engine.record_feedback("u1", "p2", Feedback.NEGATIVE)

        vector = engine.interactions.get_profile("u1").interest_vector
        assert vector["category:c1"] == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_adjustment_is_clamped(self, engine, posts):
        for _ in range(15):
            await engine.record_feedback("u1", "p3", Feedback.NEGATIVE)

        vector = engine.interactions.get_profile("u1").interest_vector
        assert vector["category:c2"] == -engine.config.interest_cap

    @pytest.mark.asyncio
    async def test_feedback_does_not_count_as_interaction(self, engine, posts):
        await engine.record_feedback("u1", "p1", Feedback.POSITIVE)
        assert engine.interactions.interaction_count("u1") == 0

    @pytest.mark.asyncio
    async def test_unknown_post_raises_not_found(self, engine, posts):
        with pytest.raises(NotFound):
            await engine.record_feedback("u1", "missing", Feedback.POSITIVE)
        assert engine.feedback.feedback_for("u1") == []

    @pytest.mark.asyncio
    async def test_attributes_to_recommending_strategy(self, engine, posts, clock):
        batch = await engine.generate_batch("u1", limit=3, types=["trending", "content_based"])
        item = batch.items[0]

        record = await engine.record_feedback("u1", item.post_id, Feedback.POSITIVE)

        assert record.strategy == item.strategy
        assert (
            await engine.recommendations.item_state("u1", item.post_id, clock())
            == ItemState.FED_BACK
        )
        assert engine.feedback.feedback_for("u1") == [record]

    @pytest.mark.asyncio
    async def test_positive_feedback_never_lowers_interest_score(self, engine, posts):
        await engine.track_interaction("u1", "p3", Action.VIEW)
        pool = [p for p in await engine.profiles.candidate_pool() if p.post_id != "p1"]
        extractor = engine.extractors[StrategyType.USER_INTEREST]

        def score_of(scored, post_id):
            return next((s.raw_score for s in scored if s.post_id == post_id), 0.0)

        before = score_of(await extractor.score("u1", pool, 10), "p2")
        await engine.record_feedback("u1", "p1", Feedback.POSITIVE)
        after = score_of(await extractor.score("u1", pool, 10), "p2")

        assert after >= before
        assert after > 0


class TestFeedbackInLaterGenerations:
    @pytest.mark.asyncio
    async def test_positive_feedback_raises_next_interest_score(self, engine, content_store):
        content_store.add("p1", category_id="c5")
        content_store.add("p2", category_id="c5")
        content_store.add("p3", category_id="c6")
        await engine.track_interaction("u1", "p3", Action.VIEW)

        def interest_score(batch, post_id):
            for item in batch.items:
                if item.post_id == post_id:
                    return item.strategy_scores.get(StrategyType.USER_INTEREST, 0.0)
            return 0.0

        before = interest_score(
            await engine.generate_batch("u1", limit=5, types=["user_interest"]), "p2"
        )
        await engine.record_feedback("u1", "p1", Feedback.POSITIVE)
        after = interest_score(
            await engine.generate_batch("u1", limit=5, types=["user_interest"]), "p2"
        )

        assert before == 0.0
        assert after > before

    @pytest.mark.asyncio
    async def test_feedback_alone_keeps_hybrid_in_cold_start(self, engine, posts):
        await engine.record_feedback("fresh", "p1", Feedback.POSITIVE)

        batch = await engine.generate_batch("fresh", limit=3)

        assert batch.cold_start is True
        assert batch.weights[StrategyType.USER_INTEREST] == 0.0
        assert all(StrategyType.USER_INTEREST not in item.strategy_scores for item in batch.items)
