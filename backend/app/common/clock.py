"""Wall-clock helpers.

Session timestamps are stored as naive UTC so they compare the same way on
PostgreSQL and SQLite.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def seconds_between(earlier: datetime | None, later: datetime) -> int:
    """Whole seconds from ``earlier`` to ``later``, never negative."""
    if earlier is None:
        return 0
    return max(0, int((later - earlier).total_seconds()))
