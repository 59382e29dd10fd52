"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.db.session import get_db  # re-export
from app.models.user import User
from app.services.auth import get_user_from_token
from app.services.errors import (
    ConflictError,
    FlatShareError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

__all__ = [
    "AUTH_COOKIE",
    "get_db",
    "get_current_user",
    "require_auth",
    "to_http_exception",
]


# Cookie name for browser sessions
AUTH_COOKIE = "access_token"

_ERROR_STATUS: dict[type[FlatShareError], int] = {
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ValidationError: 422,
}


def to_http_exception(exc: FlatShareError) -> HTTPException:
    """Translate a domain error into an HTTPException carrying its code."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
        headers=headers,
    )


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
    access_token: str | None = Cookie(None),
) -> User | None:
    """Return the authenticated user or None.

    Checks (in order):
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    token: str | None = None

    # Check Authorization header
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :]

    # Fall back to cookie
    if token is None and access_token:
        token = access_token

    if token is None:
        return None

    return get_user_from_token(db, token)


def require_auth(
    request: Request,
    user: User | None = Depends(get_current_user),
) -> User:
    """Dependency that requires authentication; returns 401 otherwise."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
