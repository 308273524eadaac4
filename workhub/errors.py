"""Domain errors raised by services and rendered as JSON by the app's exception handlers.

Each error carries the HTTP status it maps to. Services raise them; routers only
catch one when a route needs a different status for the same condition.
"""

from __future__ import annotations

from typing import Any


class WorkhubError(Exception):
    """Base class for errors that render as ``{"error": message}``."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.extra = extra or {}
        self.headers = headers
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class NotFoundError(WorkhubError):
    """Resource is absent or the caller cannot see it. Both render the same 404."""

    status_code = 404
    default_message = "Not found"


class ForbiddenError(WorkhubError):
    status_code = 403
    default_message = "Forbidden"


class ValidationFailedError(WorkhubError, ValueError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(WorkhubError):
    """Duplicate slug, identifier, membership or pending invitation."""

    status_code = 400
    default_message = "Resource already exists"


class GoneError(WorkhubError):
    status_code = 410
    default_message = "This resource is no longer available"


class RateLimitedError(WorkhubError):
    status_code = 429
    default_message = "Too many requests. Please try again later."
