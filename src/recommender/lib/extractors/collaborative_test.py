"""Tests for the collaborative-filtering extractor."""

import pytest

from ...models import Action, StrategyType


@pytest.fixture
def collaborative(engine):
    return engine.extractors[StrategyType.COLLABORATIVE_FILTERING]


@pytest.fixture
def posts(content_store):
    for i in range(1, 9):
        content_store.add(f"p{i}")


async def interact(engine, user_id, *pairs):
    for post_id, action in pairs:
        await engine.interactions.record_interaction(user_id, post_id, action)


class TestCollaborativeFilteringExtractor:
    def test_name(self, collaborative):
        assert collaborative.name == "collaborative_filtering"

    @pytest.mark.asyncio
    async def test_recommends_what_similar_users_liked(self, engine, posts, collaborative):
        await interact(engine, "u1", ("p1", Action.VIEW), ("p2", Action.LIKE))
        await interact(engine, "u2", ("p1", Action.VIEW), ("p2", Action.VIEW), ("p3", Action.LIKE))
        pool = await engine.profiles.candidate_pool()

        scored = await collaborative.score("u1", pool, 10)

        assert [s.post_id for s in scored] == ["p3"]
        assert scored[0].raw_score == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_single_shared_interaction_is_ignored(self, engine, posts, collaborative):
        await interact(engine, "u1", ("p1", Action.VIEW), ("p2", Action.VIEW))
        await interact(engine, "u3", ("p1", Action.LIKE), ("p4", Action.LIKE))
        pool = await engine.profiles.candidate_pool()

        assert collaborative.similar_users("u1") == []
        assert await collaborative.score("u1", pool, 10) == []

    @pytest.mark.asyncio
    async def test_closer_neighbours_weigh_more(self, engine, posts, collaborative):
        await interact(engine, "u1", ("p1", Action.VIEW), ("p2", Action.VIEW))
        await interact(engine, "u2", ("p1", Action.VIEW), ("p2", Action.VIEW), ("p3", Action.SHARE))
        await interact(
            engine, "u4",
            ("p1", Action.VIEW), ("p2", Action.VIEW), ("p6", Action.VIEW),
            ("p7", Action.VIEW), ("p5", Action.LIKE),
        )
        pool = await engine.profiles.candidate_pool()

        scored = await collaborative.score("u1", pool, 10)

        assert [s.post_id for s in scored] == ["p3", "p5"]
        assert [u for u, _ in collaborative.similar_users("u1")] == ["u2", "u4"]

    @pytest.mark.asyncio
    async def test_neighbour_views_are_not_recommendations(self, engine, posts, collaborative):
        await interact(engine, "u1", ("p1", Action.VIEW), ("p2", Action.VIEW))
        await interact(engine, "u2", ("p1", Action.VIEW), ("p2", Action.VIEW), ("p3", Action.VIEW))
        pool = await engine.profiles.candidate_pool()

        assert await collaborative.score("u1", pool, 10) == []

    @pytest.mark.asyncio
    async def test_excludes_posts_target_already_saw(self, engine, posts, collaborative):
        await interact(engine, "u1", ("p1", Action.VIEW), ("p2", Action.VIEW))
        await interact(engine, "u2", ("p1", Action.LIKE), ("p2", Action.LIKE))
        pool = await engine.profiles.candidate_pool()

        assert await collaborative.score("u1", pool, 10) == []

    @pytest.mark.asyncio
    async def test_user_without_history(self, engine, posts, collaborative):
        await interact(engine, "u2", ("p1", Action.LIKE), ("p2", Action.LIKE))
        pool = await engine.profiles.candidate_pool()

        assert await collaborative.score("u1", pool, 10) == []
