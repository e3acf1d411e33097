"""Test seed helpers for creating quiz catalog data and signed tokens."""

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm import Session

from app.core.dependencies import UserRole
from app.core.security import create_access_token
from app.models.quiz import QuestionFormat, Quiz, QuizQuestion


def create_quiz(
    db: Session,
    points: Sequence[int] = (10, 20, 5),
    correct_answers: Sequence[Any] | None = None,
    formats: Sequence[QuestionFormat] | None = None,
    time_limit_seconds: int = 600,
    title: str = "Test Quiz",
) -> Quiz:
    """
    Create a quiz with one question per entry in ``points``.

    Defaults to multiple choice questions whose keys are "A", "B", "C", ...
    """
    if correct_answers is None:
        correct_answers = [chr(ord("A") + i % 4) for i in range(len(points))]
    if formats is None:
        formats = [QuestionFormat.MULTIPLE_CHOICE] * len(points)

    quiz = Quiz(id=uuid.uuid4(), title=title, time_limit_seconds=time_limit_seconds)
    for position, (pts, key, fmt) in enumerate(zip(points, correct_answers, formats)):
        quiz.questions.append(
            QuizQuestion(
                id=uuid.uuid4(),
                position=position,
                prompt=f"Question {position + 1}",
                format=fmt,
                correct_answer=key,
                points=pts,
            )
        )
    db.add(quiz)
    db.commit()
    return quiz


def question_ids(quiz: Quiz) -> list[str]:
    return [str(q.id) for q in sorted(quiz.questions, key=lambda q: q.position)]


def auth_headers(user_id: uuid.UUID, role: UserRole = UserRole.STUDENT) -> dict[str, str]:
    token = create_access_token(user_id=str(user_id), role=role.value)
    return {"Authorization": f"Bearer {token}"}
