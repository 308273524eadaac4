"""Workspace service: create, list, update, delete, leave and member management."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from workhub.models.team import Team, TeamMember
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.models.workspace_member import WorkspaceMember
from workhub.services.membership import (
    ROLE_ADMIN,
    ROLE_OWNER,
    can_assign_admin_role,
    can_manage_members,
    ensure_not_owner,
)

logger = logging.getLogger(__name__)

SLUG_TAKEN = "Workspace slug is already taken"


def _slug_taken(db: Session, slug: str, exclude_id: UUID | None = None) -> bool:
    query = select(Workspace.id).where(Workspace.slug == slug)
    if exclude_id is not None:
        query = query.where(Workspace.id != exclude_id)
    return db.scalar(query) is not None


def create_workspace(
    db: Session,
    owner: User,
    name: str,
    slug: str,
    description: str | None = None,
) -> Workspace:
    """Create a workspace owned by ``owner``. No member row is stored for the owner."""
    if _slug_taken(db, slug):
        raise ConflictError(SLUG_TAKEN)
    workspace = Workspace(name=name, slug=slug, description=description, owner_id=owner.id)
    db.add(workspace)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(SLUG_TAKEN) from None
    db.refresh(workspace)
    logger.info("Workspace created: workspace_id=%s slug=%s owner_id=%s", workspace.id, slug, owner.id)
    return workspace


def list_user_workspaces(db: Session, user: User) -> list[tuple[Workspace, str]]:
    """Workspaces the user owns or belongs to, with the user's role, oldest first."""
    owned = db.scalars(select(Workspace).where(Workspace.owner_id == user.id)).all()
    result: list[tuple[Workspace, str]] = [(ws, ROLE_OWNER) for ws in owned]
    rows = db.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user.id, Workspace.owner_id != user.id)
    ).all()
    result.extend((ws, role) for ws, role in rows)
    result.sort(key=lambda item: item[0].created_at)
    return result


def is_slug_available(db: Session, slug: str) -> bool:
    return not _slug_taken(db, slug)


def update_workspace(
    db: Session,
    workspace: Workspace,
    caller_role: str | None,
    changes: dict[str, Any],
) -> Workspace:
    """Apply a partial update. ``changes`` holds only the fields the caller sent."""
    if not can_manage_members(caller_role):
        raise ForbiddenError("Only workspace owners and admins can update workspace settings")
    if not changes:
        raise ValidationFailedError("No valid fields to update")

    new_slug = changes.get("slug")
    if new_slug is not None and new_slug != workspace.slug and _slug_taken(db, new_slug, workspace.id):
        raise ConflictError(SLUG_TAKEN)

    for field, value in changes.items():
        setattr(workspace, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(SLUG_TAKEN) from None
    db.refresh(workspace)
    logger.info("Workspace updated: workspace_id=%s fields=%s", workspace.id, sorted(changes))
    return workspace


def delete_workspace(db: Session, workspace: Workspace, caller_role: str | None) -> None:
    """Delete a workspace and, through FK cascades, everything inside it. Owner only."""
    if caller_role != ROLE_OWNER:
        raise ForbiddenError("Only the workspace owner can delete the workspace")
    workspace_id = workspace.id
    db.delete(workspace)
    db.commit()
    logger.info("Workspace deleted: workspace_id=%s", workspace_id)


def leave_workspace(db: Session, workspace: Workspace, user: User) -> None:
    if user.id == workspace.owner_id:
        raise ValidationFailedError("Workspace owners cannot leave their own workspace")
    _remove_member_rows(db, workspace, user.id)
    logger.info("Member left workspace: workspace_id=%s user_id=%s", workspace.id, user.id)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


def list_members(db: Session, workspace: Workspace) -> list[dict[str, Any]]:
    """Owner first (synthesized, no member row), then members by join date."""
    owner = db.get(User, workspace.owner_id)
    members: list[dict[str, Any]] = []
    if owner is not None:
        members.append(_member_view(owner, ROLE_OWNER, None))
    rows = db.execute(
        select(WorkspaceMember, User)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id != workspace.owner_id,
        )
        .order_by(WorkspaceMember.joined_at)
    ).all()
    members.extend(_member_view(user, member.role, member.joined_at) for member, user in rows)
    return members


def _member_view(user: User, role: str, joined_at: datetime | None) -> dict[str, Any]:
    return {
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "username": user.username,
        "role": role,
        "joined_at": joined_at,
    }


def _get_member_row(db: Session, workspace: Workspace, user_id: UUID) -> WorkspaceMember | None:
    return db.scalar(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
        )
    )


def update_member_role(
    db: Session,
    workspace: Workspace,
    caller_role: str | None,
    target_user_id: UUID,
    role: str,
) -> WorkspaceMember:
    """Change a member's role. The owner guard runs before any capability check."""
    ensure_not_owner(workspace, target_user_id)
    if not can_manage_members(caller_role):
        raise ForbiddenError("Only workspace owners and admins can change member roles")
    if role == ROLE_ADMIN and not can_assign_admin_role(caller_role):
        raise ForbiddenError("Only the owner can assign admin role")
    member = _get_member_row(db, workspace, target_user_id)
    if member is None:
        raise NotFoundError("Member not found")
    member.role = role
    db.commit()
    db.refresh(member)
    logger.info(
        "Member role changed: workspace_id=%s user_id=%s role=%s",
        workspace.id,
        target_user_id,
        role,
    )
    return member


def remove_member(
    db: Session,
    workspace: Workspace,
    caller: User,
    caller_role: str | None,
    target_user_id: UUID,
) -> None:
    """Remove a member (self-removal allowed). The owner guard runs first."""
    ensure_not_owner(workspace, target_user_id)
    if target_user_id != caller.id and not can_manage_members(caller_role):
        raise ForbiddenError("Only workspace owners and admins can remove members")
    if _get_member_row(db, workspace, target_user_id) is None:
        raise NotFoundError("Member not found")
    _remove_member_rows(db, workspace, target_user_id)
    logger.info("Member removed: workspace_id=%s user_id=%s", workspace.id, target_user_id)


def _remove_member_rows(db: Session, workspace: Workspace, user_id: UUID) -> None:
    """Delete the workspace membership and the user's team memberships in that workspace."""
    team_ids = select(Team.id).where(Team.workspace_id == workspace.id)
    db.execute(
        delete(TeamMember)
        .where(TeamMember.user_id == user_id, TeamMember.team_id.in_(team_ids))
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        delete(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Member not found")
    db.commit()
