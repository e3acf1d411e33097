"""Fixtures shared by the session tests."""

import pytest

from app.models.session import QuizSession
from app.services import session_engine


@pytest.fixture
def started(db, quiz, user_id) -> QuizSession:
    """An in-progress session on the default quiz."""
    session, _ = session_engine.create_or_resume_session(db, user_id, quiz.id)
    return session_engine.start_session(db, session.id, user_id)
