import os
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from .errors import Forbidden, Unauthorized

API_KEY_HEADER_NAME = "X-API-Key"
USER_ID_HEADER_NAME = "X-User-Id"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)
user_id_header = APIKeyHeader(name=USER_ID_HEADER_NAME, auto_error=False)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


def get_operator_ids() -> set[str]:
    """User ids allowed to read operator views, from ``RECOMMENDER_OPERATOR_IDS``."""
    raw = os.environ.get("RECOMMENDER_OPERATOR_IDS", "")
    return {part.strip() for part in raw.split(",") if part.strip()}


def require_operator(user_id: str) -> None:
    if user_id not in get_operator_ids():
        raise Forbidden("Operator access required")


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    expected_key = get_api_key()
    if not expected_key or api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def current_user_id(
    user_id: Annotated[str | None, Depends(user_id_header)],
) -> str:
    """The user on whose behalf the request is made.

    The authentication proxy in front of this service resolves the session
    and forwards the user id in ``X-User-Id``.
    """
    if not user_id or not user_id.strip():
        raise Unauthorized("Authentication required")
    return user_id.strip()


CurrentUser = Annotated[str, Depends(current_user_id)]
