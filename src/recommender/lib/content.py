"""Content store access and the content profile cache.

Post content lives in an external content store.  The engine only needs a
small derived summary of each post (its :class:`ContentProfile`): category,
tags, author, publication time and engagement counters.  The
:class:`ContentProfileCache` derives those summaries lazily from post
documents and keeps them for ``profile_ttl`` so extractors never re-derive
them on every call.

The production content store is the ``posts`` Elasticsearch index.  Post
documents are expected to carry::

    {
        "post_id": "p1",
        "category_id": "c1",
        "tag_ids": ["t1", "t2"],
        "author_id": "u9",
        "published_at": "2024-05-01T12:00:00Z",
        "view_count": 120,
        "like_count": 14,
        "comment_count": 3
    }
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable

from pydantic import ValidationError

from ..config import CANDIDATE_POOL_SIZE, PROFILE_TTL
from ..models import ContentProfile, utcnow
from .elasticsearch import hit_sources, unwrap_es_response

logger = logging.getLogger(__name__)

POSTS_INDEX = "posts"


# ---------------------------------------------------------------------------
# Content store collaborator
# ---------------------------------------------------------------------------

class ContentStore(ABC):
    """Read access to post documents."""

    @abstractmethod
    async def fetch_post(self, post_id: str) -> dict | None:
        """Return the post document, or ``None`` if it does not exist."""
        ...

    @abstractmethod
    async def list_posts(self, size: int) -> list[dict]:
        """Return up to *size* published posts, most recent first."""
        ...

    @abstractmethod
    async def list_posts_by_author(self, author_id: str, size: int) -> list[dict]:
        """Return up to *size* posts written by *author_id*, most recent first."""
        ...


class ElasticsearchContentStore(ContentStore):
    """Content store backed by the ``posts`` Elasticsearch index."""

    def __init__(self, es, index: str = POSTS_INDEX):
        self._es = es
        self._index = index

    async def fetch_post(self, post_id: str) -> dict | None:
        resp = await self._es.search(
            index=self._index,
            query={"term": {"post_id": post_id}},
            size=1,
        )
        sources = hit_sources(unwrap_es_response(resp))
        return sources[0] if sources else None

    async def list_posts(self, size: int) -> list[dict]:
        resp = await self._es.search(
            index=self._index,
            query={"bool": {"filter": [{"exists": {"field": "published_at"}}]}},
            size=size,
            sort=[{"published_at": "desc"}],
        )
        return hit_sources(unwrap_es_response(resp))

    async def list_posts_by_author(self, author_id: str, size: int) -> list[dict]:
        resp = await self._es.search(
            index=self._index,
            query={"term": {"author_id": author_id}},
            size=size,
            sort=[{"published_at": "desc"}],
        )
        return hit_sources(unwrap_es_response(resp))


# ---------------------------------------------------------------------------
# Profile derivation
# ---------------------------------------------------------------------------

def engagement_score(like_count: int, comment_count: int) -> float:
    """Engagement of a single post: likes count double, comments triple."""
    return (like_count * 2 + comment_count * 3) / 10


def profile_from_document(doc: dict) -> ContentProfile | None:
    """Derive a :class:`ContentProfile` from a post document.

    Returns ``None`` for documents missing an id or publication time, or
    carrying malformed fields.
    """
    post_id = doc.get("post_id")
    if not post_id or not doc.get("published_at"):
        return None

    try:
        like_count = int(doc.get("like_count") or 0)
        comment_count = int(doc.get("comment_count") or 0)
        return ContentProfile(
            post_id=post_id,
            category_id=doc.get("category_id"),
            tag_ids=frozenset(doc.get("tag_ids") or []),
            author_id=doc.get("author_id"),
            published_at=doc["published_at"],
            view_count=int(doc.get("view_count") or 0),
            like_count=like_count,
            comment_count=comment_count,
            engagement_score=engagement_score(like_count, comment_count),
        )
    except (ValidationError, ValueError, TypeError):
        logger.warning("Skipping malformed post document %s", post_id)
        return None


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class ContentProfileCache:
    """Lazily derived, time-limited cache of content profiles."""

    def __init__(
        self,
        store: ContentStore,
        ttl: timedelta = PROFILE_TTL,
        pool_size: int = CANDIDATE_POOL_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self._ttl = ttl
        self._pool_size = pool_size
        self._clock = clock
        self._entries: dict[str, tuple[ContentProfile, datetime]] = {}
        self._pool_loaded_at: datetime | None = None

    def _fresh(self, loaded_at: datetime, now: datetime) -> bool:
        return now - loaded_at < self._ttl

    def put(self, profile: ContentProfile) -> None:
        self._entries[profile.post_id] = (profile, self._clock())

    def invalidate(self, post_id: str) -> None:
        self._entries.pop(post_id, None)

    async def get(self, post_id: str) -> ContentProfile | None:
        """Return the profile for *post_id*, deriving it if missing or stale."""
        entry = self._entries.get(post_id)
        if entry is not None and self._fresh(entry[1], self._clock()):
            return entry[0]

        doc = await self.store.fetch_post(post_id)
        profile = profile_from_document(doc) if doc else None
        if profile is None:
            self._entries.pop(post_id, None)
            return None
        self.put(profile)
        return profile

    def cached(self, post_id: str) -> ContentProfile | None:
        """The cached profile for *post_id*, fresh or not, without fetching."""
        entry = self._entries.get(post_id)
        return entry[0] if entry is not None else None

    async def get_many(self, post_ids) -> dict[str, ContentProfile]:
        profiles: dict[str, ContentProfile] = {}
        for post_id in post_ids:
            profile = await self.get(post_id)
            if profile is not None:
                profiles[post_id] = profile
        return profiles

    async def candidate_pool(self) -> list[ContentProfile]:
        """All cached profiles, reloading recent posts when the pool is stale."""
        now = self._clock()
        if self._pool_loaded_at is None or not self._fresh(self._pool_loaded_at, now):
            docs = await self.store.list_posts(self._pool_size)
            for doc in docs:
                profile = profile_from_document(doc)
                if profile is not None:
                    self._entries[profile.post_id] = (profile, now)
            self._pool_loaded_at = now
            logger.info("Loaded %d post documents into the candidate pool", len(docs))

        return sorted(
            (profile for profile, _ in self._entries.values()),
            key=lambda p: p.post_id,
        )

    async def authored_by(self, author_id: str, size: int) -> list[ContentProfile]:
        """Load and cache up to *size* posts written by *author_id*."""
        now = self._clock()
        profiles = []
        for doc in await self.store.list_posts_by_author(author_id, size):
            profile = profile_from_document(doc)
            if profile is not None:
                self._entries[profile.post_id] = (profile, now)
                profiles.append(profile)
        return profiles

    def by_author(self, author_id: str) -> list[ContentProfile]:
        """Cached profiles written by *author_id*."""
        return [
            profile
            for profile, _ in list(self._entries.values())
            if profile.author_id == author_id
        ]
