"""Invitation schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from workhub.schemas.common import RequestModel, ResponseModel, normalize_email, one_of
from workhub.services.membership import ASSIGNABLE_WORKSPACE_ROLES, ROLE_MEMBER


class InvitationCreateRequest(RequestModel):
    """Schema for inviting an email address to a workspace."""

    email: str
    role: str = ROLE_MEMBER

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        return one_of(v, ASSIGNABLE_WORKSPACE_ROLES, "role")


class InvitationCreated(ResponseModel):
    id: UUID
    token: str


class InvitationRead(ResponseModel):
    """Pending invitation as listed for workspace admins."""

    id: UUID
    email: str
    role: str
    status: str
    invited_by_id: UUID
    expires_at: datetime
    created_at: datetime


class WorkspaceSummary(ResponseModel):
    id: UUID
    name: str
    slug: str


class InviterSummary(ResponseModel):
    name: str


class InvitationDetail(ResponseModel):
    """Invitation as shown to its recipient (token lookup, my invitations)."""

    id: UUID
    email: str
    role: str
    status: str
    expires_at: datetime
    created_at: datetime
    workspace: WorkspaceSummary
    invited_by: InviterSummary


class AcceptedByToken(ResponseModel):
    workspace_slug: str


class AcceptedById(ResponseModel):
    workspace_id: UUID
