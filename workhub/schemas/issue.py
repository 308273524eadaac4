"""Issue schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from workhub.models.issue import ISSUE_STATUSES
from workhub.schemas.common import RequestModel, ResponseModel, bounded_text, one_of

TITLE_MAX_LENGTH = 200
ISSUE_DESCRIPTION_MAX_LENGTH = 10_000


def _description(value: str | None) -> str | None:
    if value is None:
        return None
    if len(value) > ISSUE_DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"Description must be at most {ISSUE_DESCRIPTION_MAX_LENGTH} characters"
        )
    return value.strip() or None


class IssueCreateRequest(RequestModel):
    title: str
    description: str | None = None
    status: str = "backlog"

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return bounded_text(v, "Title", 1, TITLE_MAX_LENGTH)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return _description(v)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        return one_of(v, ISSUE_STATUSES, "status")


class IssueUpdateRequest(RequestModel):
    """Partial update; ``description: null`` clears it, ``title: null`` is rejected."""

    title: str | None = None
    description: str | None = None
    status: str | None = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: str | None) -> str:
        if v is None:
            raise ValueError(f"Title must be between 1 and {TITLE_MAX_LENGTH} characters")
        return bounded_text(v, "Title", 1, TITLE_MAX_LENGTH)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return _description(v)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str | None) -> str:
        if v is None:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(ISSUE_STATUSES)}")
        return one_of(v, ISSUE_STATUSES, "status")


class IssueCreated(ResponseModel):
    id: UUID
    number: int
    title: str
    identifier: str


class IssueRead(ResponseModel):
    id: UUID
    workspace_id: UUID
    project_id: UUID
    number: int
    identifier: str
    title: str
    description: str | None
    status: str
    created_by_id: UUID | None
    created_at: datetime
    updated_at: datetime
