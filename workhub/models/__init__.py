"""SQLAlchemy models."""

from workhub.models.issue import ISSUE_STATUSES, Issue
from workhub.models.project import PROJECT_STATUSES, Project, ProjectTeam
from workhub.models.rate_limit import RateLimitCounter
from workhub.models.team import Team, TeamMember
from workhub.models.user import User
from workhub.models.workspace import Workspace
from workhub.models.workspace_invitation import WorkspaceInvitation
from workhub.models.workspace_member import WorkspaceMember

__all__ = [
    "ISSUE_STATUSES",
    "PROJECT_STATUSES",
    "Issue",
    "Project",
    "ProjectTeam",
    "RateLimitCounter",
    "Team",
    "TeamMember",
    "User",
    "Workspace",
    "WorkspaceInvitation",
    "WorkspaceMember",
]
