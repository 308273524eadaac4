"""Workspace API routes: workspaces, membership and leaving."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from workhub.api.deps import rate_limit, require_auth
from workhub.config import ACTION_WORKSPACE_DELETE, ACTION_WORKSPACE_UPDATE
from workhub.db.session import get_db
from workhub.models.user import User
from workhub.schemas.workspace import (
    MemberRead,
    MemberRoleUpdateRequest,
    SlugAvailability,
    WorkspaceCreateRequest,
    WorkspaceRead,
    WorkspaceUpdateRequest,
    WorkspaceWithRole,
    normalize_create_slug,
)
from workhub.services.membership import get_workspace_for_member
from workhub.services.workspace_service import (
    create_workspace,
    delete_workspace,
    is_slug_available,
    leave_workspace,
    list_members,
    list_user_workspaces,
    remove_member,
    update_member_role,
    update_workspace,
)

router = APIRouter()


def _with_role(workspace, role: str) -> WorkspaceWithRole:
    return WorkspaceWithRole.model_validate(
        {**WorkspaceRead.model_validate(workspace).model_dump(), "role": role}
    )


@router.post("", status_code=201, response_model=WorkspaceRead)
def api_create_workspace(
    data: WorkspaceCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> WorkspaceRead:
    """Create a workspace owned by the caller."""
    workspace = create_workspace(db, user, data.name, data.slug, data.description)
    return WorkspaceRead.model_validate(workspace)


@router.get("", response_model=list[WorkspaceWithRole])
def api_list_workspaces(
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[WorkspaceWithRole]:
    """List workspaces the caller owns or belongs to."""
    return [_with_role(ws, role) for ws, role in list_user_workspaces(db, user)]


@router.get("/check-slug", response_model=SlugAvailability)
def api_check_slug(
    slug: str = Query(...),
    db: Session = Depends(get_db),
    _user: User = Depends(require_auth),
) -> SlugAvailability:
    """Report whether a slug is valid and unused."""
    try:
        normalized = normalize_create_slug(slug)
    except ValueError as e:
        return SlugAvailability(available=False, error=str(e))
    return SlugAvailability(available=is_slug_available(db, normalized))


@router.get("/{slug}", response_model=WorkspaceWithRole)
def api_get_workspace(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> WorkspaceWithRole:
    """Return a workspace the caller belongs to (404 otherwise)."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    return _with_role(workspace, role)


@router.patch("/{slug}", response_model=WorkspaceRead)
def api_update_workspace(
    slug: str,
    data: WorkspaceUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(rate_limit(ACTION_WORKSPACE_UPDATE)),
) -> WorkspaceRead:
    """Partially update workspace settings (owner/admin, rate limited)."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    changes = data.model_dump(include=data.model_fields_set)
    workspace = update_workspace(db, workspace, role, changes)
    return WorkspaceRead.model_validate(workspace)


@router.delete("/{slug}")
def api_delete_workspace(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(rate_limit(ACTION_WORKSPACE_DELETE)),
) -> dict:
    """Delete a workspace and everything in it (owner only, rate limited)."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    delete_workspace(db, workspace, role)
    return {"success": True}


@router.post("/{slug}/leave")
def api_leave_workspace(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    """Leave a workspace. The owner cannot leave."""
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    leave_workspace(db, workspace, user)
    return {"success": True}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/{slug}/members", response_model=list[MemberRead])
def api_list_members(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[MemberRead]:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return [MemberRead.model_validate(m) for m in list_members(db, workspace)]


@router.patch("/{slug}/members/{user_id}")
def api_update_member_role(
    slug: str,
    user_id: UUID,
    data: MemberRoleUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    """Change a member's role between admin and member."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    member = update_member_role(db, workspace, role, user_id, data.role)
    return {"userId": str(member.user_id), "role": member.role}


@router.delete("/{slug}/members/{user_id}")
def api_remove_member(
    slug: str,
    user_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    """Remove a member (or yourself) from the workspace."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    remove_member(db, workspace, user, role, user_id)
    return {"success": True}
