"""Current-user API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.api.deps import require_auth
from workhub.db.session import get_db
from workhub.models.user import User
from workhub.schemas.invitation import InvitationDetail
from workhub.services.invitation_service import list_user_invitations

router = APIRouter()


@router.get("/me/invitations", response_model=list[InvitationDetail])
def api_my_invitations(
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[InvitationDetail]:
    """Open invitations addressed to the caller's email."""
    return [InvitationDetail.model_validate(i) for i in list_user_invitations(db, user)]
