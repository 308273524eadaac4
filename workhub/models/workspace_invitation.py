"""WorkspaceInvitation model: time-boxed, token-addressable offer to join a workspace."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workhub.db.session import Base
from workhub.timeutils import ensure_utc, utcnow

if TYPE_CHECKING:
    from workhub.models.user import User
    from workhub.models.workspace import Workspace

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_DECLINED = "declined"
INVITATION_EXPIRED = "expired"


class WorkspaceInvitation(Base):
    """Invitation for one email address at one role.

    Expiry is computed: a pending row past ``expires_at`` is expired even though
    its stored status is still ``pending``. Use ``is_expired`` rather than status.
    """

    __tablename__ = "workspace_invitations"
    __table_args__ = (
        # At most one open invitation per (workspace, email)
        Index(
            "uq_workspace_invitations_pending_email",
            "workspace_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_workspace_invitations_email_status", "email", "status"),
        CheckConstraint("role IN ('admin', 'member')", name="ck_workspace_invitations_role"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name="ck_workspace_invitations_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=INVITATION_PENDING)
    invited_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    workspace: Mapped[Workspace] = relationship("Workspace", lazy="select")
    invited_by: Mapped[User] = relationship("User", lazy="select")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.status == INVITATION_EXPIRED:
            return True
        return (now or utcnow()) > ensure_utc(self.expires_at)

    def is_open(self, now: datetime | None = None) -> bool:
        """Pending and not yet past its expiry."""
        return self.status == INVITATION_PENDING and not self.is_expired(now)
