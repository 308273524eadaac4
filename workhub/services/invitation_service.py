"""Workspace invitation lifecycle: create, look up, accept, decline, revoke.

States: pending -> accepted | declined | expired. Revoke is a hard delete.
Expiry is computed from ``expires_at``; a pending row past it is expired even
though storage still says ``pending``. Transitions out of ``pending`` are
single conditional UPDATEs (``WHERE status = 'pending'``) whose row count
tells whether this request won, so a double submit cannot both succeed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.config import get_settings
from workhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.models.workspace_invitation import (
    INVITATION_ACCEPTED,
    INVITATION_DECLINED,
    INVITATION_EXPIRED,
    INVITATION_PENDING,
    WorkspaceInvitation,
)
from workhub.models.workspace_member import WorkspaceMember
from workhub.services.membership import (
    ROLE_ADMIN,
    can_assign_admin_role,
    can_manage_members,
    is_workspace_member,
)
from workhub.timeutils import utcnow

logger = logging.getLogger(__name__)

INVITATION_NOT_FOUND = "Invitation not found"
INVITATION_ALREADY_SENT = "An invitation has already been sent to this email"
ALREADY_A_MEMBER = "User is already a member of this workspace"


class InvitationUnavailableError(ValidationFailedError):
    """The invitation exists but can no longer be acted on."""

    status: str = INVITATION_PENDING


class InvitationExpiredError(InvitationUnavailableError):
    default_message = "This invitation has expired"
    status = INVITATION_EXPIRED


class InvitationProcessedError(InvitationUnavailableError):
    """Already accepted or declined."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"This invitation has already been {status}")


class InvitationEmailMismatchError(ForbiddenError):
    default_message = "This invitation is not for you"


def generate_invitation_token() -> str:
    """Unguessable URL-safe token, unrelated to the row id."""
    return secrets.token_urlsafe(32)


def _emails_match(invitation: WorkspaceInvitation, user: User) -> bool:
    return invitation.email.strip().lower() == user.email.strip().lower()


def _ensure_open(invitation: WorkspaceInvitation) -> None:
    # A stored outcome is reported even when the row has also passed its expiry
    if invitation.status in (INVITATION_ACCEPTED, INVITATION_DECLINED):
        raise InvitationProcessedError(invitation.status)
    if invitation.is_expired():
        raise InvitationExpiredError()


def _email_belongs_to_member(db: Session, workspace: Workspace, email: str) -> bool:
    owner_email = db.scalar(select(User.email).where(User.id == workspace.owner_id))
    if owner_email is not None and owner_email.lower() == email:
        return True
    member_id = db.scalar(
        select(WorkspaceMember.id)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(
            WorkspaceMember.workspace_id == workspace.id,
            func.lower(User.email) == email,
        )
    )
    return member_id is not None


# ---------------------------------------------------------------------------
# Create / list / revoke (workspace admins)
# ---------------------------------------------------------------------------


def create_invitation(
    db: Session,
    workspace: Workspace,
    inviter: User,
    inviter_role: str | None,
    email: str,
    role: str,
) -> WorkspaceInvitation:
    """Create a pending invitation for ``email``.

    Raises ForbiddenError when the inviter cannot manage members (or cannot
    grant admin), ConflictError when the email is already a member or already
    has an open invitation. A stale pending row for the same email is marked
    expired first so the new invitation can take its place.
    """
    if not can_manage_members(inviter_role):
        raise ForbiddenError("Only workspace owners and admins can invite members")
    if role == ROLE_ADMIN and not can_assign_admin_role(inviter_role):
        raise ForbiddenError("Only the owner can assign admin role")

    email = email.strip().lower()
    if _email_belongs_to_member(db, workspace, email):
        raise ConflictError(ALREADY_A_MEMBER)

    now = utcnow()
    existing = db.scalar(
        select(WorkspaceInvitation).where(
            WorkspaceInvitation.workspace_id == workspace.id,
            WorkspaceInvitation.email == email,
            WorkspaceInvitation.status == INVITATION_PENDING,
        )
    )
    if existing is not None:
        if existing.is_open(now):
            raise ConflictError(INVITATION_ALREADY_SENT)
        existing.status = INVITATION_EXPIRED
        db.flush()

    invitation = WorkspaceInvitation(
        token=generate_invitation_token(),
        workspace_id=workspace.id,
        email=email,
        role=role,
        status=INVITATION_PENDING,
        invited_by_id=inviter.id,
        expires_at=now + timedelta(days=get_settings().invitation_expiry_days),
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request created the pending invitation first
        db.rollback()
        raise ConflictError(INVITATION_ALREADY_SENT) from None
    db.refresh(invitation)
    logger.info(
        "Invitation created: invitation_id=%s workspace_id=%s role=%s invited_by=%s",
        invitation.id,
        workspace.id,
        role,
        inviter.id,
    )
    return invitation


def list_workspace_invitations(
    db: Session, workspace: Workspace, caller_role: str | None
) -> list[WorkspaceInvitation]:
    """Open (pending, unexpired) invitations of a workspace, newest first."""
    if not can_manage_members(caller_role):
        raise ForbiddenError("Only workspace owners and admins can view invitations")
    return list(
        db.scalars(
            select(WorkspaceInvitation)
            .where(
                WorkspaceInvitation.workspace_id == workspace.id,
                WorkspaceInvitation.status == INVITATION_PENDING,
                WorkspaceInvitation.expires_at > utcnow(),
            )
            .order_by(WorkspaceInvitation.created_at.desc())
        )
    )


def list_user_invitations(db: Session, user: User) -> list[WorkspaceInvitation]:
    """Open invitations addressed to the user's email."""
    return list(
        db.scalars(
            select(WorkspaceInvitation)
            .where(
                WorkspaceInvitation.email == user.email.strip().lower(),
                WorkspaceInvitation.status == INVITATION_PENDING,
                WorkspaceInvitation.expires_at > utcnow(),
            )
            .order_by(WorkspaceInvitation.created_at.desc())
        )
    )


def revoke_invitation(
    db: Session, workspace: Workspace, caller_role: str | None, invitation_id: UUID
) -> None:
    """Hard-delete an invitation, scoped to the workspace it belongs to."""
    if not can_manage_members(caller_role):
        raise ForbiddenError("Only workspace owners and admins can revoke invitations")
    result = db.execute(
        delete(WorkspaceInvitation).where(
            WorkspaceInvitation.id == invitation_id,
            WorkspaceInvitation.workspace_id == workspace.id,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError(INVITATION_NOT_FOUND)
    db.commit()
    logger.info("Invitation revoked: invitation_id=%s workspace_id=%s", invitation_id, workspace.id)


# ---------------------------------------------------------------------------
# Recipient side
# ---------------------------------------------------------------------------


def get_invitation_by_token(db: Session, token: str) -> WorkspaceInvitation:
    """Public lookup. Distinguishes not found, expired and already processed."""
    invitation = db.scalar(select(WorkspaceInvitation).where(WorkspaceInvitation.token == token))
    if invitation is None:
        raise NotFoundError(INVITATION_NOT_FOUND)
    _ensure_open(invitation)
    return invitation


def _get_invitation_by_id(db: Session, invitation_id: UUID) -> WorkspaceInvitation:
    invitation = db.get(WorkspaceInvitation, invitation_id)
    if invitation is None:
        raise NotFoundError(INVITATION_NOT_FOUND)
    return invitation


def _mark_accepted(db: Session, invitation: WorkspaceInvitation) -> int:
    result = db.execute(
        update(WorkspaceInvitation)
        .where(
            WorkspaceInvitation.id == invitation.id,
            WorkspaceInvitation.status == INVITATION_PENDING,
        )
        .values(status=INVITATION_ACCEPTED)
    )
    return result.rowcount


def _accept(db: Session, invitation: WorkspaceInvitation, user: User) -> Workspace:
    """Join the workspace and mark the invitation accepted in one transaction.

    Idempotent: when the user already belongs to the workspace no member row
    is inserted, and a repeated accept of an accepted invitation succeeds.
    """
    if not _emails_match(invitation, user):
        raise InvitationEmailMismatchError()

    workspace = invitation.workspace
    if invitation.status == INVITATION_ACCEPTED and is_workspace_member(db, workspace, user.id):
        return workspace
    _ensure_open(invitation)

    try:
        if not is_workspace_member(db, workspace, user.id):
            db.add(
                WorkspaceMember(
                    workspace_id=workspace.id,
                    user_id=user.id,
                    role=invitation.role,
                )
            )
            db.flush()
        if _mark_accepted(db, invitation) == 0:
            # Declined or accepted by a concurrent request
            db.rollback()
            db.refresh(invitation)
            if invitation.status == INVITATION_ACCEPTED and is_workspace_member(db, workspace, user.id):
                return workspace
            _ensure_open(invitation)
            raise InvitationProcessedError(invitation.status)
        db.commit()
    except IntegrityError:
        # A concurrent accept inserted the member row first
        db.rollback()
        _mark_accepted(db, invitation)
        db.commit()

    logger.info(
        "Invitation accepted: invitation_id=%s workspace_id=%s user_id=%s",
        invitation.id,
        workspace.id,
        user.id,
    )
    return workspace


def accept_invitation_by_token(db: Session, token: str, user: User) -> Workspace:
    invitation = db.scalar(select(WorkspaceInvitation).where(WorkspaceInvitation.token == token))
    if invitation is None:
        raise NotFoundError(INVITATION_NOT_FOUND)
    return _accept(db, invitation, user)


def accept_invitation_by_id(db: Session, invitation_id: UUID, user: User) -> Workspace:
    return _accept(db, _get_invitation_by_id(db, invitation_id), user)


def decline_invitation_by_token(db: Session, token: str) -> None:
    """Public decline. Only a pending invitation can be declined."""
    result = db.execute(
        update(WorkspaceInvitation)
        .where(
            WorkspaceInvitation.token == token,
            WorkspaceInvitation.status == INVITATION_PENDING,
        )
        .values(status=INVITATION_DECLINED)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Invitation not found or already processed")
    db.commit()
    logger.info("Invitation declined by token")


def decline_invitation_by_id(db: Session, invitation_id: UUID, user: User) -> None:
    invitation = _get_invitation_by_id(db, invitation_id)
    if not _emails_match(invitation, user):
        raise InvitationEmailMismatchError()
    result = db.execute(
        update(WorkspaceInvitation)
        .where(
            WorkspaceInvitation.id == invitation.id,
            WorkspaceInvitation.status == INVITATION_PENDING,
        )
        .values(status=INVITATION_DECLINED)
    )
    if result.rowcount == 0:
        db.rollback()
        db.refresh(invitation)
        _ensure_open(invitation)
        raise InvitationProcessedError(invitation.status)
    db.commit()
    logger.info("Invitation declined: invitation_id=%s user_id=%s", invitation.id, user.id)
