"""FastAPI dependencies for authentication and authorization."""

from enum import Enum
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

from app.core.app_exceptions import ForbiddenError
from app.core.security import verify_access_token
from app.db.session import get_db  # noqa: F401  (re-exported for endpoints)


class UserRole(str, Enum):
    """User role enum."""

    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class CurrentUser(BaseModel):
    """Authenticated caller as asserted by the access token.

    User records live in the identity service; the session engine only
    needs the id (for ownership checks) and the role (for maintenance).
    """

    id: UUID
    role: UserRole


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Dependency to get the current authenticated user from JWT token."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid authorization scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
        ) from None

    try:
        payload = verify_access_token(token)
        return CurrentUser(id=UUID(payload["sub"]), role=UserRole(payload["role"]))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {str(e)}",
        ) from e


def require_roles(*allowed_roles: UserRole):
    """Dependency factory to require specific roles."""

    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise ForbiddenError(
                "Access denied",
                details={"required_roles": [r.value for r in allowed_roles]},
            )
        return current_user

    return role_checker
