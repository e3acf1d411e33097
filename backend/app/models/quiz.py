"""Quiz catalog models (read-only from the session engine's point of view)."""

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
from sqlalchemy.orm import relationship

from app.common.clock import utcnow
from app.db.base import Base, JSONType


class QuestionFormat(str, PyEnum):
    """How a question's answer is compared against its key."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MATCHING = "matching"


class Quiz(Base):
    """A published quiz: ordered questions plus a time limit."""

    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    time_limit_seconds = Column(Integer, nullable=False, default=0)  # 0 = untimed

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow, nullable=True)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.position",
        cascade="all, delete-orphan",
    )


class QuizQuestion(Base):
    """One question of a quiz with its answer key and point value."""

    __tablename__ = "quiz_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(
        Uuid,
        ForeignKey("quizzes.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)  # 0-based catalog order
    prompt = Column(String, nullable=True)
    format = Column(
        Enum(QuestionFormat, name="question_format"),
        nullable=False,
        default=QuestionFormat.MULTIPLE_CHOICE,
    )
    # "B" for multiple choice, true/false for true_false, {"left": "right", ...} for matching
    correct_answer = Column(JSONType, nullable=True)
    points = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    quiz = relationship("Quiz", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("quiz_id", "position", name="uq_quiz_question_position"),
        Index("ix_quiz_questions_quiz_id", "quiz_id"),
    )
