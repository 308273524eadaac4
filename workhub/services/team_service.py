"""Team service: teams inside a workspace and their members."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from workhub.models.team import Team, TeamMember
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.services.membership import (
    TEAM_ROLE_LEAD,
    can_manage_project,
    can_manage_team,
    is_workspace_member,
    resolve_team_role,
)

logger = logging.getLogger(__name__)

TEAM_NOT_FOUND = "Team not found"
IDENTIFIER_TAKEN = "Team identifier is already taken in this workspace"


def _identifier_taken(db: Session, workspace_id: UUID, identifier: str, exclude_id: UUID | None = None) -> bool:
    query = select(Team.id).where(Team.workspace_id == workspace_id, Team.identifier == identifier)
    if exclude_id is not None:
        query = query.where(Team.id != exclude_id)
    return db.scalar(query) is not None


def get_team(db: Session, workspace: Workspace, identifier: str) -> Team:
    team = db.scalar(
        select(Team).where(Team.workspace_id == workspace.id, Team.identifier == identifier.upper())
    )
    if team is None:
        raise NotFoundError(TEAM_NOT_FOUND)
    return team


def list_teams(db: Session, workspace: Workspace, user_id: UUID) -> list[dict[str, Any]]:
    """Teams of a workspace with member counts and the caller's team role."""
    member_counts = (
        select(TeamMember.team_id, func.count(TeamMember.id).label("member_count"))
        .group_by(TeamMember.team_id)
        .subquery()
    )
    caller_roles = (
        select(TeamMember.team_id, TeamMember.role)
        .where(TeamMember.user_id == user_id)
        .subquery()
    )
    rows = db.execute(
        select(Team, member_counts.c.member_count, caller_roles.c.role)
        .outerjoin(member_counts, member_counts.c.team_id == Team.id)
        .outerjoin(caller_roles, caller_roles.c.team_id == Team.id)
        .where(Team.workspace_id == workspace.id)
        .order_by(Team.name)
    ).all()
    return [
        {
            "id": team.id,
            "workspace_id": team.workspace_id,
            "name": team.name,
            "identifier": team.identifier,
            "description": team.description,
            "created_at": team.created_at,
            "member_count": count or 0,
            "user_role": role,
        }
        for team, count, role in rows
    ]


def create_team(
    db: Session,
    workspace: Workspace,
    creator: User,
    creator_role: str | None,
    name: str,
    identifier: str,
    description: str | None = None,
) -> Team:
    """Create a team; the creator becomes its lead."""
    if not can_manage_project(creator_role):
        raise ForbiddenError("Only workspace admins can create teams")
    if _identifier_taken(db, workspace.id, identifier):
        raise ConflictError(IDENTIFIER_TAKEN)

    team = Team(workspace_id=workspace.id, name=name, identifier=identifier, description=description)
    db.add(team)
    try:
        db.flush()
        db.add(TeamMember(team_id=team.id, user_id=creator.id, role=TEAM_ROLE_LEAD))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(IDENTIFIER_TAKEN) from None
    db.refresh(team)
    logger.info("Team created: team_id=%s workspace_id=%s identifier=%s", team.id, workspace.id, identifier)
    return team


def update_team(
    db: Session,
    team: Team,
    workspace_role: str | None,
    team_role: str | None,
    changes: dict[str, Any],
) -> Team:
    if not can_manage_team(workspace_role, team_role):
        raise ForbiddenError("Only team leads and workspace admins can update this team")
    if not changes:
        raise ValidationFailedError("No valid fields to update")
    new_identifier = changes.get("identifier")
    if new_identifier is not None and _identifier_taken(db, team.workspace_id, new_identifier, team.id):
        raise ConflictError(IDENTIFIER_TAKEN)
    for field, value in changes.items():
        setattr(team, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(IDENTIFIER_TAKEN) from None
    db.refresh(team)
    return team


def delete_team(db: Session, team: Team, workspace_role: str | None, team_role: str | None) -> None:
    if not can_manage_team(workspace_role, team_role):
        raise ForbiddenError("Only team leads and workspace admins can delete this team")
    team_id = team.id
    db.delete(team)
    db.commit()
    logger.info("Team deleted: team_id=%s", team_id)


# ---------------------------------------------------------------------------
# Team members
# ---------------------------------------------------------------------------


def list_team_members(db: Session, team: Team) -> list[dict[str, Any]]:
    rows = db.execute(
        select(TeamMember, User)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team.id)
        .order_by(TeamMember.joined_at)
    ).all()
    return [
        {
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, user in rows
    ]


def add_team_member(
    db: Session,
    workspace: Workspace,
    team: Team,
    workspace_role: str | None,
    team_role: str | None,
    user_id: UUID,
    role: str,
) -> TeamMember:
    """Add a workspace member to a team."""
    if not can_manage_team(workspace_role, team_role):
        raise ForbiddenError("Only team leads and workspace admins can add team members")
    if not is_workspace_member(db, workspace, user_id):
        raise ValidationFailedError("User must be a workspace member to join a team")
    if resolve_team_role(db, team.id, user_id) is not None:
        raise ConflictError("User is already a team member")

    member = TeamMember(team_id=team.id, user_id=user_id, role=role)
    db.add(member)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User is already a team member") from None
    db.refresh(member)
    logger.info("Team member added: team_id=%s user_id=%s role=%s", team.id, user_id, role)
    return member


def remove_team_member(
    db: Session,
    team: Team,
    workspace_role: str | None,
    team_role: str | None,
    caller_id: UUID,
    target_user_id: UUID,
) -> None:
    """Remove a team member. Anyone may remove themselves."""
    if target_user_id != caller_id and not can_manage_team(workspace_role, team_role):
        raise ForbiddenError("Only team leads and workspace admins can remove team members")
    result = db.execute(
        delete(TeamMember).where(TeamMember.team_id == team.id, TeamMember.user_id == target_user_id)
    )
    if result.rowcount == 0:
        db.rollback()
        raise ValidationFailedError("User is not a team member")
    db.commit()
    logger.info("Team member removed: team_id=%s user_id=%s", team.id, target_user_id)
