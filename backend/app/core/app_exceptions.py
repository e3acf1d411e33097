"""Application-specific exceptions for consistent error handling.

The quiz session engine raises these directly; the global handlers in
``app.core.errors`` render them into the ``{error_code, message, details}``
envelope, so callers never see partial success.
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


class NotFoundError(AppError):
    """Session, quiz, or question entry does not exist."""

    def __init__(self, message: str = "Resource not found", details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_404_NOT_FOUND, "NOT_FOUND", message, details)


class ForbiddenError(AppError):
    """Acting user does not own the session or lacks the required role."""

    def __init__(self, message: str = "Not authorized", details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_403_FORBIDDEN, "FORBIDDEN", message, details)


class InvalidStateError(AppError):
    """Operation is not permitted from the session's current status."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_409_CONFLICT, "INVALID_STATE", message, details)


class SessionExpiredError(AppError):
    """Session aged past the inactivity threshold."""

    def __init__(self, message: str = "Session has expired", details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_410_GONE, "SESSION_EXPIRED", message, details)


class InvalidArgumentError(AppError):
    """Malformed input such as an out-of-range index or a missing value."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, "INVALID_ARGUMENT", message, details)
