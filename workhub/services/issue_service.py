"""Issue service: per-project numbering, creation and mutation guards.

Numbers come from ``projects.last_issue_number``, incremented with a single
UPDATE ... RETURNING. The row lock that UPDATE takes is held until the issue
insert commits, so concurrent creators in one project are serialized and
each gets a distinct number. Deleting an issue never lowers the counter, so
numbers are not reused. The unique constraint on (project_id, number) is the
backstop: a collision (e.g. rows written without the counter) resynchronises
the counter and retries.
"""

from __future__ import annotations

import logging
import re
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.errors import ForbiddenError, NotFoundError, ValidationFailedError, WorkhubError
from workhub.models.issue import ISSUE_STATUSES, Issue
from workhub.models.project import Project, ProjectTeam
from workhub.models.team import Team
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.services.membership import can_manage_issue, resolve_workspace_role

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 3
ISSUE_NOT_FOUND = "Issue not found"
ISSUE_KEY_RE = re.compile(r"^([A-Za-z0-9]{2,6})-(\d+)$")


def next_issue_number(db: Session, project_id: UUID) -> int:
    """Allocate the next number for a project inside the caller's transaction."""
    number = db.execute(
        update(Project)
        .where(Project.id == project_id)
        .values(last_issue_number=Project.last_issue_number + 1)
        .returning(Project.last_issue_number)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()
    if number is None:
        raise NotFoundError("Project not found")
    return number


def _resync_issue_counter(db: Session, project_id: UUID) -> None:
    """Raise the counter to the highest stored number if it fell behind."""
    highest = (
        select(func.coalesce(func.max(Issue.number), 0))
        .where(Issue.project_id == project_id)
        .scalar_subquery()
    )
    db.execute(
        update(Project)
        .where(Project.id == project_id, Project.last_issue_number < highest)
        .values(last_issue_number=highest)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def create_issue(
    db: Session,
    workspace: Workspace,
    project: Project,
    creator: User,
    title: str,
    description: str | None = None,
    status: str = "backlog",
) -> Issue:
    """Create an issue with the project's next number. Caller must be a workspace member."""
    project_id = project.id
    for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
        number = next_issue_number(db, project_id)
        issue = Issue(
            workspace_id=workspace.id,
            project_id=project_id,
            number=number,
            title=title,
            description=description,
            status=status,
            created_by_id=creator.id,
        )
        db.add(issue)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Issue number collision: project_id=%s number=%d attempt=%d",
                project_id,
                number,
                attempt,
            )
            _resync_issue_counter(db, project_id)
            continue
        db.refresh(issue)
        logger.info(
            "Issue created: issue_id=%s project_id=%s number=%d", issue.id, project_id, number
        )
        return issue
    raise WorkhubError("Failed to allocate an issue number")


def get_issue_for_member(db: Session, issue_id: UUID, user_id: UUID) -> tuple[Issue, str]:
    """Return (issue, caller's workspace role). 404 when absent or not visible."""
    issue = db.get(Issue, issue_id)
    if issue is None:
        raise NotFoundError(ISSUE_NOT_FOUND)
    workspace = db.get(Workspace, issue.workspace_id)
    role = resolve_workspace_role(db, workspace, user_id) if workspace is not None else None
    if role is None:
        raise NotFoundError(ISSUE_NOT_FOUND)
    return issue, role


def get_issue_by_key(db: Session, workspace: Workspace, key: str) -> Issue:
    """Look up an issue by its human identifier, e.g. ``PROJ-12``."""
    match = ISSUE_KEY_RE.match(key.strip())
    if match is None:
        raise NotFoundError(ISSUE_NOT_FOUND)
    identifier, number = match.group(1).upper(), int(match.group(2))
    issue = db.scalar(
        select(Issue)
        .join(Project, Project.id == Issue.project_id)
        .where(
            Issue.workspace_id == workspace.id,
            Project.identifier == identifier,
            Issue.number == number,
        )
    )
    if issue is None:
        raise NotFoundError(ISSUE_NOT_FOUND)
    return issue


def list_issues(
    db: Session,
    workspace: Workspace,
    project_identifier: str | None = None,
    team_identifier: str | None = None,
    status: str | None = None,
) -> list[Issue]:
    """Issues of a workspace, newest first, optionally filtered by project, team or status."""
    query = (
        select(Issue)
        .join(Project, Project.id == Issue.project_id)
        .where(Issue.workspace_id == workspace.id)
    )
    if project_identifier:
        query = query.where(Project.identifier == project_identifier.upper())
    if team_identifier:
        query = (
            query.join(ProjectTeam, ProjectTeam.project_id == Project.id)
            .join(Team, Team.id == ProjectTeam.team_id)
            .where(Team.identifier == team_identifier.upper())
        )
    if status:
        if status not in ISSUE_STATUSES:
            raise ValidationFailedError(
                f"Invalid status. Must be one of: {', '.join(ISSUE_STATUSES)}"
            )
        query = query.where(Issue.status == status)
    return list(db.scalars(query.order_by(Issue.created_at.desc(), Issue.number.desc())))


def update_issue(
    db: Session,
    issue: Issue,
    caller_role: str | None,
    caller_id: UUID,
    changes: dict[str, Any],
) -> Issue:
    """Apply a partial update. Owners/admins or the issue's creator only."""
    if not can_manage_issue(caller_role, issue, caller_id):
        raise ForbiddenError("You do not have permission to edit this issue")
    if not changes:
        raise ValidationFailedError("No valid fields to update")
    for field, value in changes.items():
        setattr(issue, field, value)
    db.commit()
    db.refresh(issue)
    return issue


def delete_issue(db: Session, issue: Issue, caller_role: str | None, caller_id: UUID) -> None:
    if not can_manage_issue(caller_role, issue, caller_id):
        raise ForbiddenError("You do not have permission to delete this issue")
    issue_id = issue.id
    db.delete(issue)
    db.commit()
    logger.info("Issue deleted: issue_id=%s", issue_id)
