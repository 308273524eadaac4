"""Invitation API routes.

``workspace_router`` holds the admin side under /api/workspaces/{slug}/invitations.
``router`` holds the recipient side under /api/invitations: the public token
routes answer 410 for expired or processed invitations, the authenticated
by-id routes answer 400.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.api.deps import rate_limit, require_auth
from workhub.config import ACTION_WORKSPACE_INVITE
from workhub.db.session import get_db
from workhub.errors import GoneError
from workhub.models.user import User
from workhub.schemas.invitation import (
    AcceptedById,
    AcceptedByToken,
    InvitationCreated,
    InvitationCreateRequest,
    InvitationDetail,
    InvitationRead,
)
from workhub.services.invitation_service import (
    InvitationUnavailableError,
    accept_invitation_by_id,
    accept_invitation_by_token,
    create_invitation,
    decline_invitation_by_id,
    decline_invitation_by_token,
    get_invitation_by_token,
    list_workspace_invitations,
    revoke_invitation,
)
from workhub.services.membership import get_workspace_for_member

workspace_router = APIRouter()
router = APIRouter()


def _gone(exc: InvitationUnavailableError) -> GoneError:
    return GoneError(exc.message, extra={"status": exc.status})


# ---------------------------------------------------------------------------
# Workspace admins
# ---------------------------------------------------------------------------


@workspace_router.post("/{slug}/invitations", status_code=201, response_model=InvitationCreated)
def api_create_invitation(
    slug: str,
    data: InvitationCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(rate_limit(ACTION_WORKSPACE_INVITE)),
) -> InvitationCreated:
    """Invite an email address to the workspace (owner/admin, rate limited)."""
    workspace, role = get_workspace_for_member(db, slug, user.id)
    invitation = create_invitation(db, workspace, user, role, data.email, data.role)
    return InvitationCreated(id=invitation.id, token=invitation.token)


@workspace_router.get("/{slug}/invitations", response_model=list[InvitationRead])
def api_list_workspace_invitations(
    slug: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[InvitationRead]:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    return [InvitationRead.model_validate(i) for i in list_workspace_invitations(db, workspace, role)]


@workspace_router.delete("/{slug}/invitations/{invitation_id}")
def api_revoke_invitation(
    slug: str,
    invitation_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    workspace, role = get_workspace_for_member(db, slug, user.id)
    revoke_invitation(db, workspace, role, invitation_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Recipients: token links
# ---------------------------------------------------------------------------


@router.get("/token/{token}", response_model=InvitationDetail)
def api_get_invitation_by_token(token: str, db: Session = Depends(get_db)) -> InvitationDetail:
    """Public lookup used to render the invitation page."""
    try:
        invitation = get_invitation_by_token(db, token)
    except InvitationUnavailableError as e:
        raise _gone(e) from e
    return InvitationDetail.model_validate(invitation)


@router.post("/token/{token}/accept", response_model=AcceptedByToken)
def api_accept_invitation_by_token(
    token: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> AcceptedByToken:
    try:
        workspace = accept_invitation_by_token(db, token, user)
    except InvitationUnavailableError as e:
        raise _gone(e) from e
    return AcceptedByToken(workspace_slug=workspace.slug)


@router.post("/token/{token}/decline")
def api_decline_invitation_by_token(token: str, db: Session = Depends(get_db)) -> dict:
    decline_invitation_by_token(db, token)
    return {"success": True}


# ---------------------------------------------------------------------------
# Recipients: signed-in, by id
# ---------------------------------------------------------------------------


@router.post("/{invitation_id}/accept", response_model=AcceptedById)
def api_accept_invitation(
    invitation_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> AcceptedById:
    workspace = accept_invitation_by_id(db, invitation_id, user)
    return AcceptedById(workspace_id=workspace.id)


@router.post("/{invitation_id}/decline")
def api_decline_invitation(
    invitation_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    decline_invitation_by_id(db, invitation_id, user)
    return {"success": True}
