"""Pytest configuration and shared fixtures."""

import os
import tempfile
import uuid
from collections.abc import Generator

# Settings and the engine are built at import time; point them at a scratch
# SQLite file before anything under app/ is imported.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="quiz-sessions-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
)
os.environ["ENV"] = "test"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-quiz-sessions-0123456789")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.dependencies import UserRole  # noqa: E402
from app.db.base import Base, import_models  # noqa: E402
from app.db.engine import engine  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.quiz import Quiz  # noqa: E402
from tests.helpers.seed import auth_headers, create_quiz  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    import_models()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a test database session with transaction rollback."""
    # Dedicated connection + outer transaction; the session works in SAVEPOINTs
    # so application code can commit without leaking data between tests.
    connection = engine.connect()
    trans = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database dependency override."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def quiz(db: Session) -> Quiz:
    """Three multiple choice questions worth 10, 20, and 5 points."""
    return create_quiz(db, points=[10, 20, 5], correct_answers=["A", "B", "C"])


@pytest.fixture
def auth_headers_student(user_id) -> dict[str, str]:
    return auth_headers(user_id)


@pytest.fixture
def auth_headers_other(other_user_id) -> dict[str, str]:
    return auth_headers(other_user_id)


@pytest.fixture
def auth_headers_admin() -> dict[str, str]:
    return auth_headers(uuid.uuid4(), role=UserRole.ADMIN)
