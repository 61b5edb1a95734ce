"""Shared fixtures: a frozen clock, an in-memory content store and an engine."""

from datetime import datetime, timedelta, timezone

import pytest

from .config import EngineConfig
from .lib.content import ContentStore
from .lib.engine import RecommendationEngine

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """A clock tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeContentStore(ContentStore):
    """Content store holding post documents in a dict."""

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.failing: set[str] = set()
        self.fetch_calls: list[str] = []

    def add(
        self,
        post_id: str,
        category_id: str | None = "c1",
        tag_ids: tuple[str, ...] = (),
        author_id: str = "author",
        published_at: datetime = NOW - timedelta(days=1),
        view_count: int = 0,
        like_count: int = 0,
        comment_count: int = 0,
    ) -> dict:
        doc = {
            "post_id": post_id,
            "category_id": category_id,
            "tag_ids": list(tag_ids),
            "author_id": author_id,
            "published_at": published_at,
            "view_count": view_count,
            "like_count": like_count,
            "comment_count": comment_count,
            "title": f"Post {post_id}",
        }
        self.docs[post_id] = doc
        return doc

    async def fetch_post(self, post_id: str) -> dict | None:
        self.fetch_calls.append(post_id)
        if post_id in self.failing:
            raise RuntimeError("content store unavailable")
        return self.docs.get(post_id)

    async def list_posts(self, size: int) -> list[dict]:
        docs = sorted(self.docs.values(), key=lambda d: d["published_at"], reverse=True)
        return docs[:size]

    async def list_posts_by_author(self, author_id: str, size: int) -> list[dict]:
        docs = [d for d in await self.list_posts(len(self.docs)) if d["author_id"] == author_id]
        return docs[:size]


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def engine(content_store, config, clock):
    return RecommendationEngine(content_store, config=config, clock=clock)
