"""Project service: projects inside a workspace and their team links."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from workhub.models.issue import Issue
from workhub.models.project import Project, ProjectTeam
from workhub.models.team import Team
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.services.membership import can_manage_project

logger = logging.getLogger(__name__)

PROJECT_NOT_FOUND = "Project not found"
IDENTIFIER_TAKEN = "Project identifier is already taken in this workspace"
TEAMS_NOT_FOUND = "One or more teams not found in this workspace"
ATTACH_ATTEMPTS = 2


def _identifier_taken(
    db: Session, workspace_id: UUID, identifier: str, exclude_id: UUID | None = None
) -> bool:
    query = select(Project.id).where(
        Project.workspace_id == workspace_id, Project.identifier == identifier
    )
    if exclude_id is not None:
        query = query.where(Project.id != exclude_id)
    return db.scalar(query) is not None


def _linked_team_ids(db: Session, project_id: UUID) -> set[UUID]:
    return set(db.scalars(select(ProjectTeam.team_id).where(ProjectTeam.project_id == project_id)))


def _ensure_teams_in_workspace(db: Session, workspace: Workspace, team_ids: list[UUID]) -> None:
    if not team_ids:
        return
    found = db.scalar(
        select(func.count(Team.id)).where(Team.workspace_id == workspace.id, Team.id.in_(team_ids))
    )
    if found != len(set(team_ids)):
        raise ValidationFailedError(TEAMS_NOT_FOUND)


def get_project(db: Session, workspace: Workspace, identifier: str) -> Project:
    project = db.scalar(
        select(Project).where(
            Project.workspace_id == workspace.id,
            Project.identifier == identifier.upper(),
        )
    )
    if project is None:
        raise NotFoundError(PROJECT_NOT_FOUND)
    return project


def is_identifier_available(db: Session, workspace: Workspace, identifier: str) -> bool:
    return not _identifier_taken(db, workspace.id, identifier)


def project_view(db: Session, project: Project) -> dict[str, Any]:
    """Project with its linked teams and issue count."""
    teams = db.execute(
        select(Team.id, Team.name, Team.identifier)
        .join(ProjectTeam, ProjectTeam.team_id == Team.id)
        .where(ProjectTeam.project_id == project.id)
        .order_by(Team.name)
    ).all()
    issue_count = db.scalar(select(func.count(Issue.id)).where(Issue.project_id == project.id))
    return {
        "id": project.id,
        "workspace_id": project.workspace_id,
        "name": project.name,
        "identifier": project.identifier,
        "description": project.description,
        "status": project.status,
        "created_at": project.created_at,
        "teams": [{"id": t.id, "name": t.name, "identifier": t.identifier} for t in teams],
        "issue_count": issue_count or 0,
    }


def list_projects(
    db: Session, workspace: Workspace, team_identifier: str | None = None
) -> list[dict[str, Any]]:
    """Projects of a workspace, optionally only those linked to one team."""
    query = select(Project).where(Project.workspace_id == workspace.id)
    if team_identifier:
        query = (
            query.join(ProjectTeam, ProjectTeam.project_id == Project.id)
            .join(Team, Team.id == ProjectTeam.team_id)
            .where(Team.identifier == team_identifier.upper())
        )
    projects = db.scalars(query.order_by(Project.name)).all()
    return [project_view(db, project) for project in projects]


def create_project(
    db: Session,
    workspace: Workspace,
    creator: User,
    creator_role: str | None,
    name: str,
    identifier: str,
    description: str | None = None,
    status: str = "active",
    team_ids: list[UUID] | None = None,
) -> Project:
    if not can_manage_project(creator_role):
        raise ForbiddenError("Only workspace admins can create projects")
    if _identifier_taken(db, workspace.id, identifier):
        raise ConflictError(IDENTIFIER_TAKEN)
    team_ids = list(dict.fromkeys(team_ids or []))
    _ensure_teams_in_workspace(db, workspace, team_ids)

    project = Project(
        workspace_id=workspace.id,
        name=name,
        identifier=identifier,
        description=description,
        status=status,
        created_by_id=creator.id,
    )
    db.add(project)
    try:
        db.flush()
        for team_id in team_ids:
            db.add(ProjectTeam(project_id=project.id, team_id=team_id))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(IDENTIFIER_TAKEN) from None
    db.refresh(project)
    logger.info(
        "Project created: project_id=%s workspace_id=%s identifier=%s teams=%d",
        project.id,
        workspace.id,
        identifier,
        len(team_ids),
    )
    return project


def update_project(
    db: Session, project: Project, caller_role: str | None, changes: dict[str, Any]
) -> Project:
    if not can_manage_project(caller_role):
        raise ForbiddenError("Only workspace admins can update projects")
    if not changes:
        raise ValidationFailedError("No valid fields to update")
    new_identifier = changes.get("identifier")
    if new_identifier is not None and _identifier_taken(
        db, project.workspace_id, new_identifier, project.id
    ):
        raise ConflictError(IDENTIFIER_TAKEN)
    for field, value in changes.items():
        setattr(project, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(IDENTIFIER_TAKEN) from None
    db.refresh(project)
    return project


def delete_project(db: Session, project: Project, caller_role: str | None) -> None:
    """Delete a project; its issues and team links go with it."""
    if not can_manage_project(caller_role):
        raise ForbiddenError("Only workspace admins can delete projects")
    project_id = project.id
    db.delete(project)
    db.commit()
    logger.info("Project deleted: project_id=%s", project_id)


def attach_teams(
    db: Session,
    workspace: Workspace,
    project: Project,
    caller_role: str | None,
    team_ids: list[UUID],
) -> tuple[int, int]:
    """Link teams to a project. Returns (added, skipped); already-linked teams are skipped."""
    if not can_manage_project(caller_role):
        raise ForbiddenError("Only workspace admins can manage project teams")
    team_ids = list(dict.fromkeys(team_ids))
    _ensure_teams_in_workspace(db, workspace, team_ids)
    project_id = project.id
    for attempt in range(1, ATTACH_ATTEMPTS + 1):
        linked = _linked_team_ids(db, project_id)
        to_add = [team_id for team_id in team_ids if team_id not in linked]
        for team_id in to_add:
            db.add(ProjectTeam(project_id=project_id, team_id=team_id))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent attach linked one of the teams first
            db.rollback()
            logger.warning(
                "Project team link collision: project_id=%s attempt=%d", project_id, attempt
            )
            continue
        return len(to_add), len(team_ids) - len(to_add)
    raise ConflictError("Project teams changed concurrently, please retry")


def detach_teams(
    db: Session, project: Project, caller_role: str | None, team_ids: list[UUID]
) -> int:
    if not can_manage_project(caller_role):
        raise ForbiddenError("Only workspace admins can manage project teams")
    result = db.execute(
        delete(ProjectTeam)
        .where(ProjectTeam.project_id == project.id, ProjectTeam.team_id.in_(team_ids))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
