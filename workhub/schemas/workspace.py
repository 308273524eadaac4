"""Workspace and membership schemas for request/response validation."""

from __future__ import annotations

import re
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator

from workhub.schemas.common import (
    DESCRIPTION_MAX_LENGTH,
    NAME_MAX_LENGTH,
    RequestModel,
    ResponseModel,
    bounded_text,
    one_of,
    optional_text,
)
from workhub.services.membership import ASSIGNABLE_WORKSPACE_ROLES

# Slugs chosen at creation: letters, digits, hyphen, underscore (stored lowercase)
CREATE_SLUG_RE = re.compile(r"^[a-z0-9_-]+$")
CREATE_SLUG_MIN, CREATE_SLUG_MAX = 3, 50

# Slugs set through settings are stricter
UPDATE_SLUG_RE = re.compile(r"^[a-z][a-z0-9-]*$")
UPDATE_SLUG_MIN, UPDATE_SLUG_MAX = 3, 30
RESERVED_SLUGS = frozenset(
    {
        "api", "auth", "login", "signup", "logout", "onboarding", "settings",
        "admin", "dashboard", "home", "workspace", "workspaces", "app", "help",
        "support", "docs", "blog", "pricing", "about", "contact", "terms",
        "privacy", "legal",
    }
)


def normalize_create_slug(value: str) -> str:
    slug = value.strip().lower()
    if not (CREATE_SLUG_MIN <= len(slug) <= CREATE_SLUG_MAX) or not CREATE_SLUG_RE.match(slug):
        raise ValueError(
            f"Slug must be between {CREATE_SLUG_MIN} and {CREATE_SLUG_MAX} characters and "
            "contain only letters, numbers, hyphens, and underscores"
        )
    return slug


def normalize_update_slug(value: str) -> str:
    slug = value.strip().lower()
    if not slug:
        raise ValueError("Slug is required")
    if len(slug) < UPDATE_SLUG_MIN:
        raise ValueError(f"Slug must be at least {UPDATE_SLUG_MIN} characters")
    if len(slug) > UPDATE_SLUG_MAX:
        raise ValueError(f"Slug must be at most {UPDATE_SLUG_MAX} characters")
    if not UPDATE_SLUG_RE.match(slug):
        raise ValueError(
            "Slug must start with a letter and contain only lowercase letters, numbers, and hyphens"
        )
    if slug.endswith("-"):
        raise ValueError("Slug cannot end with a hyphen")
    if "--" in slug:
        raise ValueError("Slug cannot contain consecutive hyphens")
    if slug in RESERVED_SLUGS:
        raise ValueError("This slug is reserved")
    return slug


class WorkspaceCreateRequest(RequestModel):
    """Schema for creating a workspace. The caller becomes its owner."""

    name: str
    slug: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return bounded_text(v, "Name", 1, NAME_MAX_LENGTH)

    @field_validator("slug")
    @classmethod
    def _slug(cls, v: str) -> str:
        return normalize_create_slug(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return optional_text(v, "Description", DESCRIPTION_MAX_LENGTH)


class WorkspaceUpdateRequest(RequestModel):
    """Partial update. Omitted fields are untouched; ``description: null`` clears it."""

    name: str | None = None
    slug: str | None = None
    description: str | None = None
    timezone: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Name cannot be null")
        return bounded_text(v, "Name", 1, NAME_MAX_LENGTH)

    @field_validator("slug")
    @classmethod
    def _slug(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Slug is required")
        return normalize_update_slug(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str | None) -> str | None:
        return optional_text(v, "Description", DESCRIPTION_MAX_LENGTH)

    @field_validator("timezone")
    @classmethod
    def _timezone(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Timezone cannot be empty")
        tz = v.strip()
        try:
            ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError("Invalid timezone identifier") from None
        return tz


class WorkspaceRead(ResponseModel):
    id: UUID
    name: str
    slug: str
    description: str | None
    timezone: str
    owner_id: UUID
    created_at: datetime


class WorkspaceWithRole(WorkspaceRead):
    """Workspace as seen by one of its members."""

    role: str


class SlugAvailability(ResponseModel):
    available: bool
    error: str | None = None


class MemberRoleUpdateRequest(RequestModel):
    role: str

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        return one_of(v, ASSIGNABLE_WORKSPACE_ROLES, "role")


class MemberRead(ResponseModel):
    """Workspace member. The owner is listed with role ``owner`` and no member row."""

    user_id: UUID
    name: str
    email: str
    username: str | None
    role: str
    joined_at: datetime | None
