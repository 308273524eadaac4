"""Issue API routes.

``workspace_router``: creation and listing scoped to /api/workspaces/{slug}.
``router``: /api/issues/{issue_id} read, update and delete.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from workhub.api.deps import require_auth
from workhub.db.session import get_db
from workhub.errors import NotFoundError
from workhub.models.user import User
from workhub.schemas.issue import IssueCreated, IssueCreateRequest, IssueRead, IssueUpdateRequest
from workhub.services.issue_service import (
    create_issue,
    delete_issue,
    get_issue_by_key,
    get_issue_for_member,
    list_issues,
    update_issue,
)
from workhub.services.membership import get_workspace_for_member
from workhub.services.project_service import get_project

workspace_router = APIRouter()
router = APIRouter()


@workspace_router.post(
    "/{slug}/projects/{identifier}/issues", status_code=201, response_model=IssueCreated
)
def api_create_issue(
    slug: str,
    identifier: str,
    data: IssueCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> IssueCreated:
    """Create an issue in a project. Any workspace member may create issues."""
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    try:
        project = get_project(db, workspace, identifier)
    except NotFoundError:
        raise NotFoundError("Project not found in this workspace") from None
    issue = create_issue(db, workspace, project, user, data.title, data.description, data.status)
    return IssueCreated(
        id=issue.id, number=issue.number, title=issue.title, identifier=issue.identifier
    )


@workspace_router.get("/{slug}/issues", response_model=list[IssueRead])
def api_list_issues(
    slug: str,
    project: str | None = Query(None),
    team: str | None = Query(None),
    status: str | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> list[IssueRead]:
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    issues = list_issues(db, workspace, project, team, status)
    return [IssueRead.model_validate(i) for i in issues]


@workspace_router.get("/{slug}/issues/{key}", response_model=IssueRead)
def api_get_issue_by_key(
    slug: str,
    key: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> IssueRead:
    """Look up an issue by its human identifier, e.g. ENG-42."""
    workspace, _role = get_workspace_for_member(db, slug, user.id)
    return IssueRead.model_validate(get_issue_by_key(db, workspace, key))


@router.get("/{issue_id}", response_model=IssueRead)
def api_get_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> IssueRead:
    issue, _role = get_issue_for_member(db, issue_id, user.id)
    return IssueRead.model_validate(issue)


@router.patch("/{issue_id}", response_model=IssueRead)
def api_update_issue(
    issue_id: UUID,
    data: IssueUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> IssueRead:
    """Partially update an issue (owner/admin or its creator)."""
    issue, role = get_issue_for_member(db, issue_id, user.id)
    changes = data.model_dump(include=data.model_fields_set)
    return IssueRead.model_validate(update_issue(db, issue, role, user.id, changes))


@router.delete("/{issue_id}")
def api_delete_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> dict:
    issue, role = get_issue_for_member(db, issue_id, user.id)
    delete_issue(db, issue, role, user.id)
    return {"success": True}
