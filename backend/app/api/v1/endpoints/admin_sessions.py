"""Admin maintenance endpoints for quiz sessions."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import CurrentUser, UserRole, get_db, require_roles
from app.schemas.session import ExpireStaleResponse, PurgeOldResponse
from app.services.session_maintenance import expire_stale_sessions, purge_old_sessions

router = APIRouter()

Admin = Annotated[CurrentUser, Depends(require_roles(UserRole.ADMIN))]


@router.post("/expire-stale", response_model=ExpireStaleResponse)
def expire_stale(
    db: Annotated[Session, Depends(get_db)],
    current_user: Admin,
):
    """Expire in-progress/paused sessions idle past the inactivity threshold."""
    return ExpireStaleResponse(modified_count=expire_stale_sessions(db))


@router.post("/purge", response_model=PurgeOldResponse)
def purge(
    db: Annotated[Session, Depends(get_db)],
    current_user: Admin,
    days_old: Annotated[int | None, Query(ge=0, description="Defaults to the configured retention")] = None,
):
    """Delete completed/expired sessions older than ``days_old`` days."""
    deleted = purge_old_sessions(db, days_old=days_old)
    return PurgeOldResponse(
        deleted_count=deleted,
        days_old=settings.SESSION_PURGE_AFTER_DAYS if days_old is None else days_old,
    )
