"""Team API routes under /api/workspaces/{slug}/teams."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.api.deps import require_auth
from workhub.db.session import get_db
from workhub.models.user import User
from workhub.schemas.team import (
    TeamCreateRequest,
    TeamListItem,
    TeamMemberAddRequest,
    TeamMemberRead,
    TeamRead,
    TeamUpdateRequest,
)
from workhub.services.membership import get_workspace_for_member, resolve_team_role
from workhub.services.team_service import (
    add_team_member,
    create_team,
    delete_team,
    get_team,
    list_team_members,
    list_teams,
    remove_team_member,
    update_team,
)

router = APIRouter()


@router.get("/{slug}/teams", response_model=list[TeamListItem])
def api_list_teams(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[TeamListItem]:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return [TeamListItem.model_validate(t) for t in list_teams(db, workspace, user.id)]


@router.post("/{slug}/teams", status_code=201, response_model=TeamRead)
def api_create_team(
    slug: str,
    data: TeamCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> TeamRead:
    """Create a team (owner/admin). The caller becomes its lead."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    team = create_team(db, workspace, user, role, data.name, data.identifier, data.description)
    return TeamRead.model_validate(team)


@router.get("/{slug}/teams/{identifier}", response_model=TeamRead)
def api_get_team(
    slug: str,
    identifier: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> TeamRead:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return TeamRead.model_validate(get_team(db, workspace, identifier))


@router.patch("/{slug}/teams/{identifier}", response_model=TeamRead)
def api_update_team(
    slug: str,
    identifier: str,
    data: TeamUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> TeamRead:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    team = get_team(db, workspace, identifier)
    team_role = resolve_team_role(db, team.id, user.id)
    changes = data.model_dump(include=data.model_fields_set)
    return TeamRead.model_validate(update_team(db, team, role, team_role, changes))


@router.delete("/{slug}/teams/{identifier}")
def api_delete_team(
    slug: str,
    identifier: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    team = get_team(db, workspace, identifier)
    delete_team(db, team, role, resolve_team_role(db, team.id, user.id))
    return {"success": True}


# ---------------------------------------------------------------------------
# Team members
# ---------------------------------------------------------------------------


@router.get("/{slug}/teams/{identifier}/members", response_model=list[TeamMemberRead])
def api_list_team_members(
    slug: str,
    identifier: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[TeamMemberRead]:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    team = get_team(db, workspace, identifier)
    return [TeamMemberRead.model_validate(m) for m in list_team_members(db, team)]


@router.post("/{slug}/teams/{identifier}/members", status_code=201)
def api_add_team_member(
    slug: str,
    identifier: str,
    data: TeamMemberAddRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    """Add a workspace member to the team (team lead or workspace owner/admin)."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    team = get_team(db, workspace, identifier)
    team_role = resolve_team_role(db, team.id, user.id)
    member = add_team_member(db, workspace, team, role, team_role, data.user_id, data.role)
    return {"userId": str(member.user_id), "role": member.role}


@router.delete("/{slug}/teams/{identifier}/members/{user_id}")
def api_remove_team_member(
    slug: str,
    identifier: str,
    user_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    team = get_team(db, workspace, identifier)
    team_role = resolve_team_role(db, team.id, user.id)
    remove_team_member(db, team, role, team_role, user.id, user_id)
    return {"success": True}
