"""Background maintenance for quiz sessions: stale expiry and purge."""

from datetime import datetime, timedelta

from sqlalchemy import delete, func, update
from sqlalchemy.orm import Session

from app.common.clock import utcnow
from app.core.app_exceptions import InvalidArgumentError
from app.core.config import settings
from app.core.logging import get_logger
from app.models.session import TERMINAL_STATUSES, QuizSession, SessionStatus

logger = get_logger(__name__)

STALE_STATUSES = (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED)


def expire_stale_sessions(
    db: Session,
    now: datetime | None = None,
    threshold_hours: int | None = None,
) -> int:
    """
    Expire in-progress/paused sessions idle longer than the inactivity threshold.

    Bulk updates bypass the model's status validator, so the active marker is
    cleared explicitly.

    Returns:
        Number of sessions expired
    """
    now = now or utcnow()
    hours = settings.SESSION_INACTIVITY_TIMEOUT_HOURS if threshold_hours is None else threshold_hours
    cutoff = now - timedelta(hours=hours)

    stmt = (
        update(QuizSession)
        .where(
            QuizSession.status.in_(STALE_STATUSES),
            QuizSession.last_active < cutoff,
        )
        .values(
            status=SessionStatus.EXPIRED,
            active_marker=None,
            expired_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    modified = result.rowcount or 0
    logger.info(
        "Expired stale quiz sessions",
        extra={"modified_count": modified, "cutoff": cutoff.isoformat()},
    )
    return modified


def purge_old_sessions(
    db: Session,
    days_old: int | None = None,
    now: datetime | None = None,
) -> int:
    """
    Delete completed/expired sessions that ended more than ``days_old`` days ago.

    Raises:
        InvalidArgumentError: If ``days_old`` is negative

    Returns:
        Number of sessions deleted
    """
    days = settings.SESSION_PURGE_AFTER_DAYS if days_old is None else days_old
    if days < 0:
        raise InvalidArgumentError("days_old must be >= 0", details={"days_old": days})

    now = now or utcnow()
    cutoff = now - timedelta(days=days)
    ended_at = func.coalesce(QuizSession.end_time, QuizSession.expired_at)

    stmt = (
        delete(QuizSession)
        .where(QuizSession.status.in_(TERMINAL_STATUSES), ended_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    deleted = result.rowcount or 0
    logger.info(
        "Purged old quiz sessions",
        extra={"deleted_count": deleted, "days_old": days},
    )
    return deleted
