"""
Request dependencies shared by the route modules.

Everything stateful (database handle, rate limiters, config) hangs off
app.state, set up by create_app().
"""

import logging
from typing import Any, Callable

from fastapi import Depends, Request

from ...errors import RateLimitedError, UnauthorizedError
from ...security.session import validate_session
from .database import Database

logger = logging.getLogger(__name__)

SESSION_COOKIE = "adhder_session"
ANONYMOUS_USER = "anonymous"


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_config(request: Request) -> dict[str, Any]:
    return request.app.state.config


def _token_from(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def get_current_user(request: Request, db: Database = Depends(get_db)) -> str:
    """
    Validate the session and return the user id.

    With security.require_auth off every request runs as "anonymous".
    """
    security = request.app.state.config.get("security", {})
    if not security.get("require_auth", True):
        return ANONYMOUS_USER

    token = _token_from(request)
    if not token:
        raise UnauthorizedError("Authentication required")

    result = validate_session(db, token)
    if not result.get("valid"):
        logger.info(f"Rejected session: {result.get('reason')}")
        raise UnauthorizedError("Invalid or expired session")
    return result["user_id"]


def rate_limited(name: str) -> Callable:
    """Dependency that counts the request against the named limiter."""

    async def check(request: Request, user_id: str = Depends(get_current_user)) -> str:
        limiter = request.app.state.rate_limiters.get(name)
        if limiter is not None and limiter.is_limited(user_id):
            raise RateLimitedError("Too many requests")
        return user_id

    return check
