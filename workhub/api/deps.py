"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Cookie, Depends, Header, HTTPException, Response, status
from sqlalchemy.orm import Session

from workhub.config import get_settings
from workhub.db.session import get_db  # re-export
from workhub.errors import RateLimitedError
from workhub.models.user import User
from workhub.services.auth import get_user_from_token
from workhub.services.rate_limiter import check_rate_limit, create_rate_limit_key
from workhub.timeutils import now_ms

__all__ = [
    "AUTH_COOKIE",
    "get_db",
    "get_current_user",
    "rate_limit",
    "require_auth",
]

# Cookie name for browser sessions
AUTH_COOKIE = "access_token"


def get_current_user(
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
    access_token: str | None = Cookie(None),
) -> User | None:
    """Return the authenticated user or None.

    Checks (in order):
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    token: str | None = None

    # Check Authorization header
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :]

    # Fall back to cookie
    if token is None and access_token:
        token = access_token

    if token is None:
        return None

    return get_user_from_token(db, token)


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """Dependency that requires authentication; 401 otherwise."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def rate_limit(action: str) -> Callable[..., User]:
    """Dependency factory: authenticate, then count the request against ``action``.

    Denied requests raise RateLimitedError (429 with Retry-After). Allowed
    responses carry the X-RateLimit-* headers. Resolves to the current user.
    """

    def _check(
        response: Response,
        db: Session = Depends(get_db),
        user: User = Depends(require_auth),
    ) -> User:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return user
        policy = settings.rate_limit_policy(action)
        now = now_ms()
        result = check_rate_limit(
            db,
            create_rate_limit_key(user.id, action),
            window_seconds=policy.window_seconds,
            max_requests=policy.max_requests,
            now_ms=now,
        )
        if not result.allowed:
            headers = result.headers()
            headers["Retry-After"] = str(result.retry_after_seconds(now))
            raise RateLimitedError(headers=headers)
        response.headers.update(result.headers())
        return user

    return _check
