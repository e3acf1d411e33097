"""Read-only access to quiz definitions.

The session engine reads a quiz once per operation that needs it and never
writes catalog rows. Definitions are returned as frozen dataclasses so a
loaded quiz cannot be mutated by accident.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.app_exceptions import NotFoundError
from app.models.quiz import QuestionFormat, Quiz


@dataclass(frozen=True)
class CatalogQuestion:
    id: str
    points: int
    correct_answer: Any
    format: QuestionFormat


@dataclass(frozen=True)
class QuizDefinition:
    id: UUID
    title: str
    time_limit: int  # seconds
    questions: tuple[CatalogQuestion, ...]

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @cached_property
    def _by_id(self) -> dict[str, CatalogQuestion]:
        return {q.id: q for q in self.questions}

    def question(self, question_id: str) -> CatalogQuestion | None:
        return self._by_id.get(question_id)


def get_quiz_by_id(db: Session, quiz_id: UUID) -> QuizDefinition:
    """
    Load a quiz definition with its questions in catalog order.

    Raises:
        NotFoundError: If the quiz does not exist
    """
    stmt = select(Quiz).where(Quiz.id == quiz_id).options(selectinload(Quiz.questions))
    quiz = db.execute(stmt).scalar_one_or_none()
    if quiz is None:
        raise NotFoundError("Quiz not found", details={"quiz_id": str(quiz_id)})

    return QuizDefinition(
        id=quiz.id,
        title=quiz.title,
        time_limit=quiz.time_limit_seconds or 0,
        questions=tuple(
            CatalogQuestion(
                id=str(q.id),
                points=q.points or 0,
                correct_answer=q.correct_answer,
                format=QuestionFormat(q.format),
            )
            for q in sorted(quiz.questions, key=lambda q: q.position)
        ),
    )
