"""Pydantic schemas for request/response validation."""

from workhub.schemas.auth import UserRead
from workhub.schemas.invitation import (
    AcceptedById,
    AcceptedByToken,
    InvitationCreated,
    InvitationCreateRequest,
    InvitationDetail,
    InvitationRead,
)
from workhub.schemas.issue import IssueCreated, IssueCreateRequest, IssueRead, IssueUpdateRequest
from workhub.schemas.project import (
    ProjectCreateRequest,
    ProjectRead,
    ProjectTeamsRequest,
    ProjectUpdateRequest,
)
from workhub.schemas.team import TeamCreateRequest, TeamMemberAddRequest, TeamRead, TeamUpdateRequest
from workhub.schemas.workspace import (
    MemberRead,
    MemberRoleUpdateRequest,
    WorkspaceCreateRequest,
    WorkspaceRead,
    WorkspaceUpdateRequest,
    WorkspaceWithRole,
)

__all__ = [
    "AcceptedById",
    "AcceptedByToken",
    "InvitationCreateRequest",
    "InvitationCreated",
    "InvitationDetail",
    "InvitationRead",
    "IssueCreateRequest",
    "IssueCreated",
    "IssueRead",
    "IssueUpdateRequest",
    "MemberRead",
    "MemberRoleUpdateRequest",
    "ProjectCreateRequest",
    "ProjectRead",
    "ProjectTeamsRequest",
    "ProjectUpdateRequest",
    "TeamCreateRequest",
    "TeamMemberAddRequest",
    "TeamRead",
    "TeamUpdateRequest",
    "UserRead",
    "WorkspaceCreateRequest",
    "WorkspaceRead",
    "WorkspaceUpdateRequest",
    "WorkspaceWithRole",
]
