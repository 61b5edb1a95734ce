"""Error taxonomy shared by the engine and the HTTP layer.

Each error carries the HTTP status the boundary layer answers with; the
FastAPI app registers a single handler for :class:`RecommendationError`.
"""


class RecommendationError(Exception):
    """Base class for errors surfaced to callers of the engine."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthorized(RecommendationError):
    """No user could be resolved for the request."""

    status_code = 401


class Forbidden(RecommendationError):
    """The caller is known but may not use the requested view."""

    status_code = 403


class InvalidArgument(RecommendationError):
    """Unknown strategy type, malformed limit or similar caller error."""

    status_code = 400


class NotFound(RecommendationError):
    """An interaction or feedback referenced a post with no content profile."""

    status_code = 404


class Unavailable(RecommendationError):
    """Every strategy failed, or a storage collaborator is unreachable."""

    status_code = 503
