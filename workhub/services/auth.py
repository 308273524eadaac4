"""Session service: JWT access tokens issued by the identity subsystem.

The core only needs to answer "which user, and is the session valid". A token
is valid when its signature and ``exp`` check out and ``sub`` names an
existing user id.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from workhub.config import get_settings
from workhub.models.user import User

# JWT configuration
ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_user_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Access token whose subject is the user's id."""
    return create_access_token(data={"sub": str(user.id)}, expires_delta=expires_delta)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token. Returns payload or None."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


def get_user_from_token(db: Session, token: str) -> Optional[User]:
    """Extract user from a JWT token. Returns None if token invalid or user not found."""
    payload = decode_access_token(token)
    if payload is None:
        return None
    subject: Optional[str] = payload.get("sub")
    if subject is None:
        return None
    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        return None
    return db.get(User, user_id)
