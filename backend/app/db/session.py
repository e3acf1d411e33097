"""Database session management."""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy.orm import Session, sessionmaker

from app.db.engine import engine

# Request-scoped sessions; expire_on_commit=False keeps loaded sessions readable after commit
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: Callable[[], Session] | None = None) -> Generator[Session, None, None]:
    """Session for jobs and scripts: rolls back on error, always closes."""
    db = (factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
