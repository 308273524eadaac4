"""Project schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from workhub.models.project import PROJECT_STATUSES
from workhub.schemas.common import (
    DESCRIPTION_MAX_LENGTH,
    NAME_MAX_LENGTH,
    RequestModel,
    ResponseModel,
    bounded_text,
    normalize_identifier,
    one_of,
    optional_text,
)


class ProjectCreateRequest(RequestModel):
    name: str
    identifier: str
    description: str | None = None
    status: str = "active"
    team_ids: list[UUID] = []

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return bounded_text(v, "Project name", 1, NAME_MAX_LENGTH)

    @field_validator("identifier")
    @classmethod
    def _identifier(cls, v: str) -> str:
        return normalize_identifier(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return optional_text(v, "Description", DESCRIPTION_MAX_LENGTH)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        return one_of(v, PROJECT_STATUSES, "status")


class ProjectUpdateRequest(RequestModel):
    """Partial update; ``description: null`` clears it."""

    name: str | None = None
    identifier: str | None = None
    description: str | None = None
    status: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Project name cannot be null")
        return bounded_text(v, "Project name", 1, NAME_MAX_LENGTH)

    @field_validator("identifier")
    @classmethod
    def _identifier(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Identifier cannot be null")
        return normalize_identifier(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return optional_text(v, "Description", DESCRIPTION_MAX_LENGTH)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Status cannot be null")
        return one_of(v, PROJECT_STATUSES, "status")


class ProjectTeamsRequest(RequestModel):
    team_ids: list[UUID]

    @field_validator("team_ids")
    @classmethod
    def _team_ids(cls, v: list[UUID]) -> list[UUID]:
        if not v:
            raise ValueError("teamIds must be a non-empty array")
        return list(dict.fromkeys(v))


class ProjectTeamSummary(ResponseModel):
    id: UUID
    name: str
    identifier: str


class ProjectRead(ResponseModel):
    id: UUID
    workspace_id: UUID
    name: str
    identifier: str
    description: str | None
    status: str
    created_at: datetime
    teams: list[ProjectTeamSummary] = []
    issue_count: int = 0


class IdentifierAvailability(ResponseModel):
    available: bool
    error: str | None = None


class ProjectTeamsAdded(ResponseModel):
    added: int
    skipped: int


class ProjectTeamsRemoved(ResponseModel):
    removed: int
