"""CLI entry point for scheduled maintenance jobs.

Example:
    python -m app.jobs.run expire_stale_sessions
    python -m app.jobs.run purge_old_sessions --days-old 30
"""

import sys

import click

from app.core.app_exceptions import AppError
from app.core.logging import get_logger, setup_logging
from app.db.session import SessionLocal, session_scope
from app.services.session_maintenance import expire_stale_sessions, purge_old_sessions

logger = get_logger(__name__)


@click.group()
def cli():
    """Run a quiz session maintenance job."""
    setup_logging()


@cli.command("expire_stale_sessions")
@click.option("--threshold-hours", type=int, default=None, help="Override the inactivity threshold.")
def expire_stale_sessions_command(threshold_hours: int | None):
    """Expire in-progress/paused sessions idle past the threshold."""
    with session_scope(SessionLocal) as db:
        modified = expire_stale_sessions(db, threshold_hours=threshold_hours)
    click.echo(f"Job completed: expired {modified} session(s)")


@cli.command("purge_old_sessions")
@click.option("--days-old", type=int, default=None, help="Retention in days for finished sessions.")
def purge_old_sessions_command(days_old: int | None):
    """Delete completed/expired sessions older than the retention window."""
    try:
        with session_scope(SessionLocal) as db:
            deleted = purge_old_sessions(db, days_old=days_old)
    except AppError as e:
        logger.error("Job failed", extra={"job": "purge_old_sessions", "error": e.message})
        click.echo(f"Job failed: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Job completed: purged {deleted} session(s)")


if __name__ == "__main__":
    cli()
