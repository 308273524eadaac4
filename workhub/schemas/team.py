"""Team schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import field_validator

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
from workhub.services.membership import TEAM_ROLE_MEMBER, TEAM_ROLES


class TeamCreateRequest(RequestModel):
    name: str
    identifier: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return bounded_text(v, "Team name", 1, NAME_MAX_LENGTH)

    @field_validator("identifier")
    @classmethod
    def _identifier(cls, v: str) -> str:
        return normalize_identifier(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return optional_text(v, "Description", DESCRIPTION_MAX_LENGTH)


class TeamUpdateRequest(RequestModel):
    """Partial update; ``description: null`` clears it."""

    name: str | None = None
    identifier: str | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Team name cannot be null")
        return bounded_text(v, "Team name", 1, NAME_MAX_LENGTH)

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


class TeamRead(ResponseModel):
    id: UUID
    workspace_id: UUID
    name: str
    identifier: str
    description: str | None
    created_at: datetime


class TeamListItem(TeamRead):
    member_count: int
    user_role: str | None


class TeamMemberAddRequest(RequestModel):
    user_id: UUID
    role: str = TEAM_ROLE_MEMBER

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        return one_of(v, TEAM_ROLES, "role")


class TeamMemberRead(ResponseModel):
    user_id: UUID
    name: str
    email: str
    role: str
    joined_at: datetime
