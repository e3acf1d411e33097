"""Quiz session model: one user's timed attempt at one quiz."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship, validates

from app.common.clock import utcnow
from app.db.base import Base, JSONType

ACTIVE_MARKER = "active"


class SessionStatus(str, PyEnum):
    """Quiz session status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.EXPIRED)


ACTIVE_STATUSES = (SessionStatus.NOT_STARTED, SessionStatus.IN_PROGRESS, SessionStatus.PAUSED)
TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.EXPIRED)


class QuizSession(Base):
    """Quiz session with its embedded answer ledger.

    ``answers`` holds one entry per quiz question in catalog order (see
    ``app.services.answer_ledger``). ``active_marker`` is ``"active"`` while
    the status is non-terminal and NULL afterwards; together with the unique
    constraint below it allows at most one live attempt per (user, quiz).
    """

    __tablename__ = "quiz_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)  # identity lives outside this service
    quiz_id = Column(
        Uuid,
        ForeignKey("quizzes.id", onupdate="CASCADE"),
        nullable=False,
    )

    status = Column(
        Enum(SessionStatus, name="quiz_session_status"),
        nullable=False,
        default=SessionStatus.NOT_STARTED,
    )
    active_marker = Column(String(16), nullable=True, default=ACTIVE_MARKER)

    # Navigation and timer
    current_question_index = Column(Integer, nullable=False, default=0)
    time_remaining = Column(Integer, nullable=False, default=0)  # seconds

    # Lifecycle timestamps
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)  # completion only
    expired_at = Column(DateTime, nullable=True)
    last_active = Column(DateTime, nullable=False, default=utcnow)

    # Result (completion only)
    score = Column(Integer, nullable=True)
    time_taken = Column(Integer, nullable=True)  # seconds

    # Embedded answer ledger and client/device metadata
    answers = Column(JSONType, nullable=False, default=list)
    device_info = Column(JSONType, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow, nullable=True)

    quiz = relationship("Quiz")

    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "active_marker", name="uq_quiz_sessions_one_active"),
        Index("ix_quiz_sessions_user_quiz_status", "user_id", "quiz_id", "status"),
        Index("ix_quiz_sessions_user_created", "user_id", "created_at"),
        Index("ix_quiz_sessions_status_last_active", "status", "last_active"),
    )

    @validates("status")
    def _sync_active_marker(self, key, value):
        status = SessionStatus(value)
        self.active_marker = None if status.is_terminal else ACTIVE_MARKER
        return status
