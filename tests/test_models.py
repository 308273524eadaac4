"""Database-level guards declared on the models."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.models.issue import Issue
from workhub.models.project import Project
from workhub.models.team import Team, TeamMember
from workhub.models.workspace_invitation import WorkspaceInvitation
from workhub.models.workspace_member import WorkspaceMember
from workhub.timeutils import utcnow


def _assert_rejected(db: Session, row) -> None:
    db.add(row)
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


class TestRoleConstraints:
    def test_owner_role_cannot_be_stored_as_member(self, db: Session, workspace, make_user) -> None:
        user = make_user()
        _assert_rejected(db, WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role="owner"))

    def test_member_roles_are_accepted(self, db: Session, workspace, make_user, add_member) -> None:
        assert add_member(workspace, make_user(), role="admin").role == "admin"
        assert add_member(workspace, make_user(), role="member").role == "member"

    def test_invitation_cannot_offer_owner(self, db: Session, workspace, owner) -> None:
        _assert_rejected(
            db,
            WorkspaceInvitation(
                token="tok-owner",
                workspace_id=workspace.id,
                email="someone@example.com",
                role="owner",
                invited_by_id=owner.id,
                expires_at=utcnow() + timedelta(days=7),
            ),
        )

    def test_team_role_is_lead_or_member(self, db: Session, workspace, owner) -> None:
        team = Team(workspace_id=workspace.id, name="Engineering", identifier="ENG")
        db.add(team)
        db.commit()
        _assert_rejected(db, TeamMember(team_id=team.id, user_id=owner.id, role="admin"))


class TestStatusConstraints:
    def test_unknown_invitation_status(self, db: Session, workspace, owner) -> None:
        _assert_rejected(
            db,
            WorkspaceInvitation(
                token="tok-status",
                workspace_id=workspace.id,
                email="someone@example.com",
                role="member",
                status="revoked",
                invited_by_id=owner.id,
                expires_at=utcnow() + timedelta(days=7),
            ),
        )

    def test_unknown_project_status(self, db: Session, workspace) -> None:
        _assert_rejected(
            db, Project(workspace_id=workspace.id, name="Legacy", identifier="LEG", status="paused")
        )

    def test_unknown_issue_status(self, db: Session, workspace) -> None:
        project = Project(workspace_id=workspace.id, name="Platform", identifier="PLAT")
        db.add(project)
        db.commit()
        _assert_rejected(
            db,
            Issue(
                workspace_id=workspace.id,
                project_id=project.id,
                number=1,
                title="Bad status",
                status="blocked",
            ),
        )
