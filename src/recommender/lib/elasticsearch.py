"""Shared Elasticsearch utilities.

Helpers for working with Elasticsearch responses returned to the
content store.
"""

import logging

from elastic_transport import ObjectApiResponse

from ..errors import Unavailable

logger = logging.getLogger(__name__)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises :class:`Unavailable` if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise Unavailable("Invalid Elasticsearch response")


def hit_sources(data: dict) -> list[dict]:
    """Return the ``_source`` of every hit, skipping empty ones."""
    sources: list[dict] = []
    for hit in data.get("hits", {}).get("hits", []):
        src = hit.get("_source") or {}
        if src:
            sources.append(src)
    return sources
