"""Workspace and team role resolution plus the capability predicates built on it.

Resolution never raises for "no access": it returns None, and callers turn
None into a 404 (existence hidden from non-members) and a False capability
into a 403. The owner is derived from ``Workspace.owner_id`` and is checked
before any member row, so an owner is never reported as admin or member.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.errors import NotFoundError, ValidationFailedError
from workhub.models.issue import Issue
from workhub.models.team import TeamMember
from workhub.models.workspace import Workspace
from workhub.models.workspace_member import WorkspaceMember

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
TEAM_ROLE_LEAD = "lead"
TEAM_ROLE_MEMBER = "member"

# Roles that can be stored on a member row or an invitation
ASSIGNABLE_WORKSPACE_ROLES = (ROLE_ADMIN, ROLE_MEMBER)
TEAM_ROLES = (TEAM_ROLE_LEAD, TEAM_ROLE_MEMBER)

WORKSPACE_NOT_FOUND = "Workspace not found"
OWNER_IMMUTABLE = "Cannot modify the workspace owner"


class OwnerImmutableError(ValidationFailedError):
    """Raised when a role change or removal targets the workspace owner."""

    default_message = OWNER_IMMUTABLE


def resolve_workspace_role(db: Session, workspace: Workspace, user_id: UUID) -> str | None:
    """Return "owner", the stored member role, or None when the user has no access."""
    if user_id == workspace.owner_id:
        return ROLE_OWNER
    return db.scalar(
        select(WorkspaceMember.role).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
        )
    )


def resolve_team_role(db: Session, team_id: UUID, user_id: UUID) -> str | None:
    """Return the stored team role. Workspace roles do not imply a team role."""
    return db.scalar(
        select(TeamMember.role).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
        )
    )


def is_workspace_member(db: Session, workspace: Workspace, user_id: UUID) -> bool:
    """True for the owner and for anyone with a member row."""
    return resolve_workspace_role(db, workspace, user_id) is not None


# ---------------------------------------------------------------------------
# Capability predicates (pure)
# ---------------------------------------------------------------------------


def can_manage_members(workspace_role: str | None) -> bool:
    return workspace_role in (ROLE_OWNER, ROLE_ADMIN)


def can_assign_admin_role(workspace_role: str | None) -> bool:
    return workspace_role == ROLE_OWNER


def can_manage_team(workspace_role: str | None, team_role: str | None) -> bool:
    """Team leads manage their team; workspace owners and admins manage every team."""
    return team_role == TEAM_ROLE_LEAD or workspace_role in (ROLE_OWNER, ROLE_ADMIN)


def can_manage_project(workspace_role: str | None) -> bool:
    return workspace_role in (ROLE_OWNER, ROLE_ADMIN)


def can_manage_issue(workspace_role: str | None, issue: Issue, user_id: UUID) -> bool:
    """Owners and admins manage every issue; other members only the ones they created."""
    if workspace_role in (ROLE_OWNER, ROLE_ADMIN):
        return True
    return workspace_role is not None and issue.created_by_id == user_id


# ---------------------------------------------------------------------------
# Lookups that hide existence from non-members
# ---------------------------------------------------------------------------


def get_workspace_for_member(db: Session, slug: str, user_id: UUID) -> tuple[Workspace, str]:
    """Return (workspace, role) for a member. Raises NotFoundError otherwise."""
    workspace = db.scalar(select(Workspace).where(Workspace.slug == slug.lower()))
    if workspace is None:
        raise NotFoundError(WORKSPACE_NOT_FOUND)
    role = resolve_workspace_role(db, workspace, user_id)
    if role is None:
        raise NotFoundError(WORKSPACE_NOT_FOUND)
    return workspace, role


def get_workspace_by_id_for_member(
    db: Session, workspace_id: UUID, user_id: UUID
) -> tuple[Workspace, str]:
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFoundError(WORKSPACE_NOT_FOUND)
    role = resolve_workspace_role(db, workspace, user_id)
    if role is None:
        raise NotFoundError(WORKSPACE_NOT_FOUND)
    return workspace, role


def ensure_not_owner(workspace: Workspace, target_user_id: UUID) -> None:
    """Reject any membership mutation aimed at the owner.

    Runs before capability checks so that no caller role can get past it.
    """
    if target_user_id == workspace.owner_id:
        raise OwnerImmutableError()
