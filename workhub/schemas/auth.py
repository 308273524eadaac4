"""Authentication schemas."""

from __future__ import annotations

from uuid import UUID

from workhub.schemas.common import ResponseModel


class UserRead(ResponseModel):
    """Schema for reading user info (response)."""

    id: UUID
    name: str
    email: str
    username: str | None
