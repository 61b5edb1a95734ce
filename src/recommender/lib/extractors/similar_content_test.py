"""Tests for the similar-content extractor."""

import pytest

from ...models import Action, ContentProfile, StrategyType
from ...conftest import NOW
from .similar_content import weighted_jaccard


def profile(post_id, category_id=None, tags=()):
    return ContentProfile(
        post_id=post_id, category_id=category_id, tag_ids=frozenset(tags), published_at=NOW
    )


@pytest.fixture
def similar(engine):
    return engine.extractors[StrategyType.SIMILAR_CONTENT]


class TestWeightedJaccard:
    def test_identical_posts(self):
        a = profile("a", "c1", ["t1", "t2"])
        assert weighted_jaccard(a, a, 2.0, 1.0) == 1.0

    def test_disjoint_posts(self):
        assert weighted_jaccard(profile("a", "c1", ["t1"]), profile("b", "c2", ["t2"]), 2.0, 1.0) == 0.0

    def test_shared_tag_outweighs_shared_category(self):
        source = profile("s", "c1", ["t1", "t2"])
        same_category = profile("a", "c1", ["t3", "t4"])
        same_tag = profile("b", "c2", ["t1", "t4"])

        assert weighted_jaccard(source, same_tag, 2.0, 1.0) > weighted_jaccard(
            source, same_category, 2.0, 1.0
        )

    def test_no_taxonomy_scores_zero(self):
        assert weighted_jaccard(profile("a"), profile("b"), 2.0, 1.0) == 0.0


class TestSimilarContentExtractor:
    def test_name(self, similar):
        assert similar.name == "similar_content"

    @pytest.mark.asyncio
    async def test_no_history_returns_empty(self, engine, content_store, similar):
        content_store.add("p1")
        pool = await engine.profiles.candidate_pool()
        assert await similar.score("u1", pool, 10) == []

    @pytest.mark.asyncio
    async def test_ranks_by_overlap_and_excludes_seen(self, engine, content_store, similar):
        content_store.add("liked", category_id="c1", tag_ids=("t1", "t2"))
        content_store.add("close", category_id="c1", tag_ids=("t1", "t2", "t3"))
        content_store.add("loose", category_id="c1", tag_ids=("t9",))
        content_store.add("unrelated", category_id="c5", tag_ids=("t8",))
        await engine.interactions.record_interaction("u1", "liked", Action.LIKE)
        pool = await engine.profiles.candidate_pool()

        scored = await similar.score("u1", pool, 10)

        assert [s.post_id for s in scored] == ["close", "loose"]
        assert all(0 < s.raw_score <= 1 for s in scored)

    @pytest.mark.asyncio
    async def test_stronger_actions_weigh_more(self, engine, content_store, similar):
        content_store.add("shared", category_id="c1")
        content_store.add("viewed", category_id="c2")
        content_store.add("a", category_id="c1")
        content_store.add("b", category_id="c2")
        await engine.interactions.record_interaction("u1", "shared", Action.SHARE)
        await engine.interactions.record_interaction("u1", "viewed", Action.VIEW)
        pool = await engine.profiles.candidate_pool()

        scored = await similar.score("u1", pool, 10)

        assert [s.post_id for s in scored] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_old_interactions_outside_window_are_ignored(
        self, engine, content_store, clock, similar
    ):
        content_store.add("liked", category_id="c1")
        content_store.add("candidate", category_id="c1")
        await engine.interactions.record_interaction("u1", "liked", Action.LIKE)
        clock.advance(days=31)
        pool = await engine.profiles.candidate_pool()

        assert await similar.score("u1", pool, 10) == []
