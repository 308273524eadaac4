"""Project API routes under /api/workspaces/{slug}/projects."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from workhub.api.deps import require_auth
from workhub.db.session import get_db
from workhub.models.user import User
from workhub.schemas.common import normalize_identifier
from workhub.schemas.project import (
    IdentifierAvailability,
    ProjectCreateRequest,
    ProjectRead,
    ProjectTeamsAdded,
    ProjectTeamsRemoved,
    ProjectTeamsRequest,
    ProjectUpdateRequest,
)
from workhub.services.membership import get_workspace_for_member
from workhub.services.project_service import (
    attach_teams,
    create_project,
    delete_project,
    detach_teams,
    get_project,
    is_identifier_available,
    list_projects,
    project_view,
    update_project,
)

router = APIRouter()


@router.get("/{slug}/projects", response_model=list[ProjectRead])
def api_list_projects(
    slug: str,
    team: str | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[ProjectRead]:
    """List projects, optionally only those linked to a team identifier."""
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return [ProjectRead.model_validate(p) for p in list_projects(db, workspace, team)]


@router.get("/{slug}/projects/check-identifier", response_model=IdentifierAvailability)
def api_check_project_identifier(
    slug: str,
    identifier: str = Query(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> IdentifierAvailability:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    try:
        normalized = normalize_identifier(identifier)
    except ValueError as e:
        return IdentifierAvailability(available=False, error=str(e))
    return IdentifierAvailability(available=is_identifier_available(db, workspace, normalized))


@router.post("/{slug}/projects", status_code=201, response_model=ProjectRead)
def api_create_project(
    slug: str,
    data: ProjectCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> ProjectRead:
    """Create a project (owner/admin), optionally linked to teams."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    project = create_project(
        db,
        workspace,
        user,
        role,
        data.name,
        data.identifier,
        description=data.description,
        status=data.status,
        team_ids=data.team_ids,
    )
    return ProjectRead.model_validate(project_view(db, project))


@router.get("/{slug}/projects/{identifier}", response_model=ProjectRead)
def api_get_project(
    slug: str,
    identifier: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> ProjectRead:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return ProjectRead.model_validate(project_view(db, get_project(db, workspace, identifier)))


@router.patch("/{slug}/projects/{identifier}", response_model=ProjectRead)
def api_update_project(
    slug: str,
    identifier: str,
    data: ProjectUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> ProjectRead:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    project = get_project(db, workspace, identifier)
    changes = data.model_dump(include=data.model_fields_set)
    project = update_project(db, project, role, changes)
    return ProjectRead.model_validate(project_view(db, project))


@router.delete("/{slug}/projects/{identifier}")
def api_delete_project(
    slug: str,
    identifier: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    delete_project(db, get_project(db, workspace, identifier), role)
    return {"success": True}


@router.post("/{slug}/projects/{identifier}/teams", response_model=ProjectTeamsAdded)
def api_attach_project_teams(
    slug: str,
    identifier: str,
    data: ProjectTeamsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> ProjectTeamsAdded:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    project = get_project(db, workspace, identifier)
    added, skipped = attach_teams(db, workspace, project, role, data.team_ids)
    return ProjectTeamsAdded(added=added, skipped=skipped)


@router.delete("/{slug}/projects/{identifier}/teams", response_model=ProjectTeamsRemoved)
def api_detach_project_teams(
    slug: str,
    identifier: str,
    data: ProjectTeamsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> ProjectTeamsRemoved:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    project = get_project(db, workspace, identifier)
    return ProjectTeamsRemoved(removed=detach_teams(db, project, role, data.team_ids))
