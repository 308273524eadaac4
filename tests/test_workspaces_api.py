"""Workspace API tests: CRUD, membership, the owner guard and rate limiting."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.config import get_settings
from workhub.models.team import Team, TeamMember
from workhub.models.workspace import Workspace
from workhub.services.membership import resolve_workspace_role


@pytest.fixture
def member(make_user, workspace, add_member):
    user = make_user(name="Mia Member")
    add_member(workspace, user, role="member")
    return user


@pytest.fixture
def admin(make_user, workspace, add_member):
    user = make_user(name="Adam Admin")
    add_member(workspace, user, role="admin")
    return user


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


class TestCreateWorkspace:
    def test_create_returns_workspace(self, client: TestClient, make_user, auth_headers) -> None:
        user = make_user()
        response = client.post(
            "/api/workspaces",
            json={"name": "  My Team ", "slug": "My-Team", "description": "Things"},
            headers=auth_headers(user),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "My Team"
        assert data["slug"] == "my-team"
        assert data["ownerId"] == str(user.id)
        assert data["timezone"] == "UTC"

    def test_duplicate_slug(self, client: TestClient, workspace, make_user, auth_headers) -> None:
        response = client.post(
            "/api/workspaces", json={"name": "Copy", "slug": "acme"}, headers=auth_headers(make_user())
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Workspace slug is already taken"}

    def test_missing_name(self, client: TestClient, make_user, auth_headers) -> None:
        response = client.post("/api/workspaces", json={"slug": "abc"}, headers=auth_headers(make_user()))
        assert response.status_code == 400
        assert response.json() == {"error": "name is required"}

    def test_unknown_field_rejected(self, client: TestClient, make_user, auth_headers) -> None:
        response = client.post(
            "/api/workspaces",
            json={"name": "X", "slug": "xyz", "ownerId": "someone"},
            headers=auth_headers(make_user()),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown field: ownerId"}

    def test_requires_auth(self, client: TestClient) -> None:
        response = client.post("/api/workspaces", json={"name": "X", "slug": "xyz"})
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}


class TestReadWorkspaces:
    def test_list_includes_role(self, client: TestClient, workspace, owner, member, auth_headers) -> None:
        owned = client.get("/api/workspaces", headers=auth_headers(owner)).json()
        joined = client.get("/api/workspaces", headers=auth_headers(member)).json()
        assert [(w["slug"], w["role"]) for w in owned] == [("acme", "owner")]
        assert [(w["slug"], w["role"]) for w in joined] == [("acme", "member")]

    def test_non_member_gets_404(self, client: TestClient, workspace, make_user, auth_headers) -> None:
        response = client.get("/api/workspaces/acme", headers=auth_headers(make_user()))
        assert response.status_code == 404
        assert response.json() == {"error": "Workspace not found"}

    def test_check_slug(self, client: TestClient, workspace, owner, auth_headers) -> None:
        headers = auth_headers(owner)
        assert client.get("/api/workspaces/check-slug?slug=acme", headers=headers).json()["available"] is False
        assert client.get("/api/workspaces/check-slug?slug=fresh", headers=headers).json()["available"] is True
        bad = client.get("/api/workspaces/check-slug?slug=a!", headers=headers).json()
        assert bad["available"] is False
        assert bad["error"]


class TestUpdateWorkspace:
    def test_admin_updates_name(self, client: TestClient, workspace, admin, auth_headers) -> None:
        response = client.patch("/api/workspaces/acme", json={"name": "Acme Inc"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Inc"
        assert "X-RateLimit-Limit" in response.headers

    def test_member_forbidden(self, client: TestClient, workspace, member, auth_headers) -> None:
        response = client.patch("/api/workspaces/acme", json={"name": "Nope"}, headers=auth_headers(member))
        assert response.status_code == 403

    def test_null_description_clears(self, client: TestClient, db: Session, owner, auth_headers) -> None:
        from workhub.services.workspace_service import create_workspace

        create_workspace(db, owner, "Described", "described", "Some text")
        response = client.patch(
            "/api/workspaces/described", json={"description": None}, headers=auth_headers(owner)
        )
        assert response.status_code == 200
        assert response.json()["description"] is None
        assert response.json()["name"] == "Described"

    def test_null_name_rejected(self, client: TestClient, workspace, owner, auth_headers) -> None:
        response = client.patch("/api/workspaces/acme", json={"name": None}, headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json() == {"error": "Name cannot be null"}

    def test_empty_body_rejected(self, client: TestClient, workspace, owner, auth_headers) -> None:
        response = client.patch("/api/workspaces/acme", json={}, headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json() == {"error": "No valid fields to update"}

    @pytest.mark.parametrize(
        "slug,message",
        [
            ("settings", "This slug is reserved"),
            ("1abc", "Slug must start with a letter and contain only lowercase letters, numbers, and hyphens"),
            ("abc-", "Slug cannot end with a hyphen"),
            ("ab--c", "Slug cannot contain consecutive hyphens"),
        ],
    )
    def test_slug_rules(self, client: TestClient, workspace, owner, auth_headers, slug, message) -> None:
        response = client.patch("/api/workspaces/acme", json={"slug": slug}, headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_invalid_timezone(self, client: TestClient, workspace, owner, auth_headers) -> None:
        response = client.patch(
            "/api/workspaces/acme", json={"timezone": "Mars/Olympus"}, headers=auth_headers(owner)
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid timezone identifier"}

    def test_rename_slug(self, client: TestClient, workspace, owner, auth_headers) -> None:
        response = client.patch("/api/workspaces/acme", json={"slug": "acme-corp"}, headers=auth_headers(owner))
        assert response.status_code == 200
        assert client.get("/api/workspaces/acme-corp", headers=auth_headers(owner)).status_code == 200


class TestDeleteWorkspace:
    def test_admin_cannot_delete(self, client: TestClient, workspace, admin, auth_headers) -> None:
        response = client.delete("/api/workspaces/acme", headers=auth_headers(admin))
        assert response.status_code == 403

    def test_owner_deletes(self, client: TestClient, db: Session, workspace, owner, auth_headers) -> None:
        workspace_id = workspace.id
        response = client.delete("/api/workspaces/acme", headers=auth_headers(owner))
        assert response.status_code == 200
        assert response.json() == {"success": True}
        db.expire_all()
        assert db.scalar(select(Workspace).where(Workspace.id == workspace_id)) is None


# ---------------------------------------------------------------------------
# Rate limiting on workspace mutations
# ---------------------------------------------------------------------------


class TestWorkspaceRateLimits:
    def test_update_limited_with_retry_after(
        self, client: TestClient, workspace, owner, auth_headers, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RATE_LIMIT_UPDATE_MAX", "2")
        get_settings.cache_clear()
        headers = auth_headers(owner)

        for i in range(2):
            ok = client.patch("/api/workspaces/acme", json={"name": f"Acme {i}"}, headers=headers)
            assert ok.status_code == 200

        limited = client.patch("/api/workspaces/acme", json={"name": "Acme 3"}, headers=headers)
        assert limited.status_code == 429
        assert limited.json() == {"error": "Too many requests. Please try again later."}
        assert limited.headers["X-RateLimit-Limit"] == "2"
        assert limited.headers["X-RateLimit-Remaining"] == "0"
        assert 0 < int(limited.headers["Retry-After"]) <= 60

    def test_limits_are_per_user(
        self, client: TestClient, workspace, owner, admin, auth_headers, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RATE_LIMIT_UPDATE_MAX", "1")
        get_settings.cache_clear()
        assert client.patch("/api/workspaces/acme", json={"name": "A"}, headers=auth_headers(owner)).status_code == 200
        assert client.patch("/api/workspaces/acme", json={"name": "B"}, headers=auth_headers(owner)).status_code == 429
        assert client.patch("/api/workspaces/acme", json={"name": "C"}, headers=auth_headers(admin)).status_code == 200

    def test_disabled(
        self, client: TestClient, workspace, owner, auth_headers, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("RATE_LIMIT_UPDATE_MAX", "1")
        get_settings.cache_clear()
        for name in ("A", "B", "C"):
            response = client.patch("/api/workspaces/acme", json={"name": name}, headers=auth_headers(owner))
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers


# ---------------------------------------------------------------------------
# Members and the owner guard
# ---------------------------------------------------------------------------


class TestMembers:
    def test_owner_listed_first(self, client: TestClient, workspace, owner, member, auth_headers) -> None:
        data = client.get("/api/workspaces/acme/members", headers=auth_headers(member)).json()
        assert [(m["userId"], m["role"]) for m in data] == [
            (str(owner.id), "owner"),
            (str(member.id), "member"),
        ]
        assert data[0]["joinedAt"] is None

    def test_owner_promotes_member(self, client: TestClient, db: Session, workspace, owner, member, auth_headers) -> None:
        response = client.patch(
            f"/api/workspaces/acme/members/{member.id}", json={"role": "admin"}, headers=auth_headers(owner)
        )
        assert response.status_code == 200
        assert response.json() == {"userId": str(member.id), "role": "admin"}
        assert resolve_workspace_role(db, workspace, member.id) == "admin"

    def test_admin_cannot_promote_to_admin(self, client: TestClient, workspace, admin, member, auth_headers) -> None:
        response = client.patch(
            f"/api/workspaces/acme/members/{member.id}", json={"role": "admin"}, headers=auth_headers(admin)
        )
        assert response.status_code == 403

    def test_owner_role_not_assignable(self, client: TestClient, workspace, owner, member, auth_headers) -> None:
        response = client.patch(
            f"/api/workspaces/acme/members/{member.id}", json={"role": "owner"}, headers=auth_headers(owner)
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid role. Must be one of: admin, member"}

    @pytest.mark.parametrize("caller", ["owner", "admin", "member"])
    def test_owner_guard_on_role_change(
        self, client: TestClient, db: Session, workspace, owner, admin, member, auth_headers, caller
    ) -> None:
        actor = {"owner": owner, "admin": admin, "member": member}[caller]
        response = client.patch(
            f"/api/workspaces/acme/members/{owner.id}", json={"role": "member"}, headers=auth_headers(actor)
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Cannot modify the workspace owner"}
        assert resolve_workspace_role(db, workspace, owner.id) == "owner"

    @pytest.mark.parametrize("caller", ["owner", "admin"])
    def test_owner_guard_on_removal(
        self, client: TestClient, db: Session, workspace, owner, admin, auth_headers, caller
    ) -> None:
        actor = owner if caller == "owner" else admin
        response = client.delete(f"/api/workspaces/acme/members/{owner.id}", headers=auth_headers(actor))
        assert response.status_code == 400
        assert response.json() == {"error": "Cannot modify the workspace owner"}
        assert resolve_workspace_role(db, workspace, owner.id) == "owner"

    def test_member_cannot_remove_others(self, client: TestClient, workspace, admin, member, auth_headers) -> None:
        response = client.delete(f"/api/workspaces/acme/members/{admin.id}", headers=auth_headers(member))
        assert response.status_code == 403

    def test_removal_drops_team_memberships(
        self, client: TestClient, db: Session, workspace, owner, member, auth_headers
    ) -> None:
        team = Team(workspace_id=workspace.id, name="Ops", identifier="OPS")
        db.add(team)
        db.flush()
        db.add(TeamMember(team_id=team.id, user_id=member.id, role="member"))
        db.commit()

        response = client.delete(f"/api/workspaces/acme/members/{member.id}", headers=auth_headers(owner))
        assert response.status_code == 200
        assert resolve_workspace_role(db, workspace, member.id) is None
        assert db.scalar(select(TeamMember).where(TeamMember.user_id == member.id)) is None

    def test_unknown_member(self, client: TestClient, workspace, owner, make_user, auth_headers) -> None:
        response = client.patch(
            f"/api/workspaces/acme/members/{make_user().id}", json={"role": "member"}, headers=auth_headers(owner)
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Member not found"}


class TestLeaveWorkspace:
    def test_owner_cannot_leave(self, client: TestClient, workspace, owner, auth_headers) -> None:
        response = client.post("/api/workspaces/acme/leave", headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json() == {"error": "Workspace owners cannot leave their own workspace"}

    def test_member_leaves(self, client: TestClient, db: Session, workspace, member, auth_headers) -> None:
        response = client.post("/api/workspaces/acme/leave", headers=auth_headers(member))
        assert response.status_code == 200
        assert resolve_workspace_role(db, workspace, member.id) is None
