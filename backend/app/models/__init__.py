"""Database models."""

# Import all models here so metadata sees them
from app.models.quiz import QuestionFormat, Quiz, QuizQuestion
from app.models.session import QuizSession, SessionStatus

__all__ = [
    "QuestionFormat",
    "Quiz",
    "QuizQuestion",
    "QuizSession",
    "SessionStatus",
]
