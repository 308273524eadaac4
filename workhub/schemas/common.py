"""Shared schema bases and field normalizers.

Request bodies reject unknown keys (``extra="forbid"``). JSON keys are
camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 255
IDENTIFIER_RE = re.compile(r"^[A-Z0-9]{2,6}$")

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class RequestModel(BaseModel):
    """Base for request bodies."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class ResponseModel(BaseModel):
    """Base for response projections."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


def bounded_text(value: str, label: str, min_length: int, max_length: int) -> str:
    """Trim and enforce length bounds, raising ValueError with a field message."""
    trimmed = value.strip()
    if not min_length <= len(trimmed) <= max_length:
        raise ValueError(f"{label} must be between {min_length} and {max_length} characters")
    return trimmed


def optional_text(value: str | None, label: str, max_length: int) -> str | None:
    """Trim an optional text field; empty after trimming becomes None."""
    if value is None:
        return None
    trimmed = value.strip()
    if len(trimmed) > max_length:
        raise ValueError(f"{label} must be at most {max_length} characters")
    return trimmed or None


def normalize_email(value: str) -> str:
    email = value.strip().lower()
    if not email or len(email) > EMAIL_MAX_LENGTH or not EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    return email


def normalize_identifier(value: str) -> str:
    """Upper-case and validate a team/project identifier (2-6 letters or digits)."""
    identifier = value.strip().upper()
    if not IDENTIFIER_RE.match(identifier):
        raise ValueError("Identifier must be 2-6 uppercase letters or numbers")
    return identifier


def one_of(value: str, allowed: tuple[str, ...], label: str) -> str:
    if value not in allowed:
        raise ValueError(f"Invalid {label}. Must be one of: {', '.join(allowed)}")
    return value
