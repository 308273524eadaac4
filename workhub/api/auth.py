"""Session API routes. Sign-in itself belongs to the identity provider."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from workhub.api.deps import AUTH_COOKIE, require_auth
from workhub.models.user import User
from workhub.schemas.auth import UserRead

router = APIRouter()


@router.post("/logout")
def logout(response: Response) -> dict:
    """Clear the authentication cookie."""
    response.delete_cookie(key=AUTH_COOKIE, path="/")
    return {"detail": "Logged out"}


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(require_auth)) -> UserRead:
    """Return the currently authenticated user's information."""
    return UserRead.model_validate(current_user)
