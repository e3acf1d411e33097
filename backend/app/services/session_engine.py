"""Quiz session engine: lifecycle, answers, navigation, scoring, and sync.

Every mutating operation follows the same shape inside one transaction:
load the session row with a row lock, verify ownership, consult the state
machine, mutate, refresh ``last_active``, commit.

Timer policy: pausing stops the clock. While a session is ``in_progress``
each touch deducts the wall-clock time since ``last_active`` from
``time_remaining``; time spent paused is never deducted.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.clock import seconds_between, utcnow
from app.common.pagination import PaginationParams
from app.core.app_exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    SessionExpiredError,
)
from app.core.config import settings
from app.core.logging import get_logger
from app.models.session import ACTIVE_STATUSES, QuizSession, SessionStatus
from app.schemas.session import DeviceInfo, SessionHistoryQuery, SessionSync
from app.services.answer_ledger import AnswerEntry, AnswerLedger, LedgerProgress
from app.services.quiz_catalog import QuizDefinition, get_quiz_by_id
from app.services.scoring import check_answer, compute_score, time_taken_seconds
from app.services.session_state import SessionAction, next_status

logger = get_logger(__name__)

HISTORY_SORT_COLUMNS = {
    "end_time": QuizSession.end_time,
    "start_time": QuizSession.start_time,
    "created_at": QuizSession.created_at,
    "score": QuizSession.score,
}


@dataclass
class LedgerUpdate:
    """Result of an answer, flag, or skip."""

    session: QuizSession
    entry: AnswerEntry
    progress: LedgerProgress


@dataclass
class CompletionResult:
    session: QuizSession
    total_points: int


# ============================================================================
# Helpers
# ============================================================================


def load_ledger(session: QuizSession) -> AnswerLedger:
    return AnswerLedger.load(session.answers)


def session_progress(session: QuizSession) -> LedgerProgress:
    return load_ledger(session).progress()


def _store_ledger(session: QuizSession, ledger: AnswerLedger) -> None:
    # Assign a fresh list so the JSON column is flagged dirty
    session.answers = ledger.dump()


def _transition(session: QuizSession, action: SessionAction) -> SessionStatus:
    session.status = next_status(session.status, action)
    return session.status


def _touch(session: QuizSession, now: datetime) -> None:
    """Refresh last_active, charging the elapsed time if the clock is running."""
    if session.status == SessionStatus.IN_PROGRESS:
        elapsed = seconds_between(session.last_active, now)
        session.time_remaining = max(0, (session.time_remaining or 0) - elapsed)
    session.last_active = now


def _inactivity_threshold() -> timedelta:
    return timedelta(hours=settings.SESSION_INACTIVITY_TIMEOUT_HOURS)


def is_inactive(session: QuizSession, now: datetime) -> bool:
    return session.last_active is not None and now - session.last_active > _inactivity_threshold()


def _expire_and_raise(db: Session, session: QuizSession, now: datetime) -> None:
    """Persist the expiry before failing so later callers see the real status."""
    _transition(session, SessionAction.EXPIRE)
    session.expired_at = now
    db.commit()
    logger.warning(
        "Quiz session expired on access",
        extra={"session_id": str(session.id), "user_id": str(session.user_id)},
    )
    raise SessionExpiredError(details={"session_id": str(session.id)})


def _find_active_session(db: Session, user_id: UUID, quiz_id: UUID) -> QuizSession | None:
    stmt = select(QuizSession).where(
        QuizSession.user_id == user_id,
        QuizSession.quiz_id == quiz_id,
        QuizSession.status.in_(ACTIVE_STATUSES),
    )
    return db.execute(stmt).scalars().first()


def get_user_session(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    for_update: bool = False,
) -> QuizSession:
    """
    Load a session and verify ownership.

    Raises:
        NotFoundError: If the session does not exist
        ForbiddenError: If the session belongs to another user
    """
    stmt = select(QuizSession).where(QuizSession.id == session_id)
    if for_update:
        stmt = stmt.with_for_update()
    session = db.execute(stmt).scalar_one_or_none()

    if session is None:
        raise NotFoundError("Session not found", details={"session_id": str(session_id)})

    if session.user_id != user_id:
        logger.warning(
            "Session access denied",
            extra={"session_id": str(session_id), "user_id": str(user_id)},
        )
        raise ForbiddenError("Not authorized to access this session")

    return session


def _device_info_payload(device_info: DeviceInfo | None, now: datetime) -> dict[str, Any]:
    data = device_info.model_dump(mode="json") if device_info else {}
    data["last_sync"] = now.isoformat()
    return data


# ============================================================================
# Lifecycle
# ============================================================================


def create_or_resume_session(
    db: Session,
    user_id: UUID,
    quiz_id: UUID,
    device_info: DeviceInfo | None = None,
) -> tuple[QuizSession, bool]:
    """
    Return the user's active session for a quiz, or create one.

    The unique (user_id, quiz_id, active_marker) constraint closes the race
    between two concurrent creates: the loser's insert fails inside its
    savepoint and it returns the winner's row instead.

    Returns:
        (session, created)

    Raises:
        NotFoundError: If the quiz does not exist
        InvalidArgumentError: If the quiz has no questions
    """
    quiz = get_quiz_by_id(db, quiz_id)

    existing = _find_active_session(db, user_id, quiz_id)
    if existing is not None:
        logger.info(
            "Active quiz session found",
            extra={"session_id": str(existing.id), "user_id": str(user_id), "quiz_id": str(quiz_id)},
        )
        return existing, False

    if not quiz.questions:
        raise InvalidArgumentError("Quiz has no questions", details={"quiz_id": str(quiz_id)})

    now = utcnow()
    session = QuizSession(
        id=uuid4(),
        user_id=user_id,
        quiz_id=quiz_id,
        status=SessionStatus.NOT_STARTED,
        current_question_index=0,
        time_remaining=quiz.time_limit,
        answers=AnswerLedger.for_questions(quiz.question_ids).dump(),
        device_info=_device_info_payload(device_info, now),
        last_active=now,
        created_at=now,
    )

    try:
        with db.begin_nested():
            db.add(session)
    except IntegrityError:
        winner = _find_active_session(db, user_id, quiz_id)
        if winner is None:
            raise
        logger.info(
            "Concurrent create lost, resuming existing quiz session",
            extra={"session_id": str(winner.id), "user_id": str(user_id), "quiz_id": str(quiz_id)},
        )
        db.commit()
        return winner, False

    db.commit()
    logger.info(
        "Quiz session created",
        extra={"session_id": str(session.id), "user_id": str(user_id), "quiz_id": str(quiz_id)},
    )
    return session, True


def get_session(db: Session, session_id: UUID, user_id: UUID) -> QuizSession:
    return get_user_session(db, session_id, user_id)


def start_session(db: Session, session_id: UUID, user_id: UUID) -> QuizSession:
    """
    Start a not-started session, or restart a paused one.

    Raises:
        InvalidStateError: If the session is not ``not_started``/``paused``
        SessionExpiredError: If the session was inactive past the threshold
            (the session is persisted as ``expired`` first)
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.START)

    now = utcnow()
    if is_inactive(session, now):
        _expire_and_raise(db, session, now)

    _touch(session, now)
    _transition(session, SessionAction.START)
    if session.start_time is None:
        session.start_time = now
    db.commit()

    logger.info("Quiz session started", extra={"session_id": str(session.id), "user_id": str(user_id)})
    return session


def pause_session(db: Session, session_id: UUID, user_id: UUID) -> QuizSession:
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.PAUSE)

    _touch(session, utcnow())
    _transition(session, SessionAction.PAUSE)
    db.commit()

    logger.info("Quiz session paused", extra={"session_id": str(session.id), "user_id": str(user_id)})
    return session


def resume_session(db: Session, session_id: UUID, user_id: UUID) -> QuizSession:
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.RESUME)

    now = utcnow()
    if is_inactive(session, now):
        _expire_and_raise(db, session, now)

    # Still paused here, so no time is charged for the pause
    _touch(session, now)
    _transition(session, SessionAction.RESUME)
    db.commit()

    logger.info("Quiz session resumed", extra={"session_id": str(session.id), "user_id": str(user_id)})
    return session


def complete_session(db: Session, session_id: UUID, user_id: UUID) -> CompletionResult:
    """
    Score and close a session.

    Idempotent: completing an already completed session returns the stored
    result without rescoring.

    Raises:
        InvalidStateError: If the session is not started or expired
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    quiz = get_quiz_by_id(db, session.quiz_id)

    if session.status == SessionStatus.COMPLETED:
        logger.info(
            "Quiz session already completed",
            extra={"session_id": str(session.id), "user_id": str(user_id)},
        )
        return CompletionResult(session=session, total_points=quiz.total_points)

    next_status(session.status, SessionAction.COMPLETE)

    now = utcnow()
    _touch(session, now)
    _transition(session, SessionAction.COMPLETE)
    session.score = compute_score(load_ledger(session), _points_by_question(quiz))
    session.end_time = now
    session.time_taken = time_taken_seconds(session.start_time, now)
    db.commit()

    logger.info(
        "Quiz session completed",
        extra={
            "session_id": str(session.id),
            "user_id": str(user_id),
            "score": session.score,
            "time_taken": session.time_taken,
        },
    )
    return CompletionResult(session=session, total_points=quiz.total_points)


def _points_by_question(quiz: QuizDefinition) -> dict[str, int]:
    return {q.id: q.points for q in quiz.questions}


# ============================================================================
# Answer ledger
# ============================================================================


def submit_answer(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    question_id: UUID | str,
    selected_answer: Any,
) -> LedgerUpdate:
    """
    Record an answer and grade it against the quiz key.

    Raises:
        InvalidStateError: If the session is not ``in_progress``
        NotFoundError: If the question is not part of the session
        InvalidArgumentError: If no answer value was given
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.ANSWER)

    if selected_answer is None:
        raise InvalidArgumentError("selected_answer is required")

    question_id = str(question_id)
    ledger = load_ledger(session)
    ledger.entry_for(question_id)

    quiz = get_quiz_by_id(db, session.quiz_id)
    question = quiz.question(question_id)
    if question is None:
        raise NotFoundError("Question not found", details={"question_id": question_id})

    now = utcnow()
    is_correct = check_answer(question.format, selected_answer, question.correct_answer)
    entry = ledger.record_answer(question_id, selected_answer, is_correct, now, session.last_active)
    _store_ledger(session, ledger)
    _touch(session, now)
    db.commit()

    logger.info(
        "Answer submitted",
        extra={"session_id": str(session.id), "user_id": str(user_id), "question_id": question_id},
    )
    return LedgerUpdate(session=session, entry=entry, progress=ledger.progress())


def toggle_question_flag(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    question_id: UUID | str,
) -> LedgerUpdate:
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.TOGGLE_FLAG)

    ledger = load_ledger(session)
    entry = ledger.toggle_flag(str(question_id))
    _store_ledger(session, ledger)
    _touch(session, utcnow())
    db.commit()

    logger.info(
        "Question flag toggled",
        extra={
            "session_id": str(session.id),
            "question_id": str(question_id),
            "flagged": entry.flagged,
        },
    )
    return LedgerUpdate(session=session, entry=entry, progress=ledger.progress())


def skip_question(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    question_id: UUID | str,
) -> LedgerUpdate:
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.SKIP)

    now = utcnow()
    ledger = load_ledger(session)
    entry = ledger.skip(str(question_id), now)
    _store_ledger(session, ledger)
    _touch(session, now)
    db.commit()

    logger.info(
        "Question skipped",
        extra={"session_id": str(session.id), "question_id": str(question_id)},
    )
    return LedgerUpdate(session=session, entry=entry, progress=ledger.progress())


# ============================================================================
# Navigation
# ============================================================================


def navigate_to_question(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    index: int,
) -> tuple[QuizSession, AnswerEntry]:
    """
    Move the current question pointer.

    Raises:
        InvalidStateError: If the session is not ``in_progress``/``paused``
        InvalidArgumentError: If ``index`` is outside the ledger
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.NAVIGATE)

    ledger = load_ledger(session)
    if not ledger.contains_index(index):
        logger.warning(
            "Invalid question index",
            extra={"session_id": str(session.id), "index": index, "total": len(ledger)},
        )
        raise InvalidArgumentError(
            "Invalid question index",
            details={"index": index, "total_questions": len(ledger)},
        )

    session.current_question_index = index
    _touch(session, utcnow())
    db.commit()

    return session, ledger[index]


# ============================================================================
# Sync / recovery
# ============================================================================


def _replacement_ledger(
    session: QuizSession,
    quiz: QuizDefinition,
    entries: list[Any],
) -> AnswerLedger:
    """Build the client's ledger, keeping the session's question set and order.

    Correctness is recomputed from the catalog; the client's ledger carries
    selections, not grades.
    """
    expected = load_ledger(session).question_ids
    submitted = [str(e.question_id) for e in entries]
    if submitted != expected:
        raise InvalidArgumentError(
            "Synced answers must list the session's questions in order",
            details={"expected_count": len(expected), "received_count": len(submitted)},
        )

    rebuilt = []
    for item in entries:
        qid = str(item.question_id)
        question = quiz.question(qid)
        selected = None if item.skipped else item.selected_answer
        if item.skipped and item.selected_answer is not None:
            raise InvalidArgumentError(
                "An answer entry cannot be both answered and skipped",
                details={"question_id": qid},
            )
        is_correct = None
        if selected is not None and question is not None:
            is_correct = check_answer(question.format, selected, question.correct_answer)
        rebuilt.append(
            AnswerEntry(
                question_id=qid,
                selected_answer=selected,
                is_correct=is_correct,
                time_spent=item.time_spent,
                flagged=item.flagged,
                skipped=item.skipped,
                answered_at=item.answered_at,
            )
        )
    return AnswerLedger(rebuilt)


def sync_session(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    patch: SessionSync,
) -> QuizSession:
    """
    Reconcile client-held state after a reconnect.

    Each field present in the patch replaces the stored field whole (the
    client is authoritative after reconnect); absent fields are untouched.

    Raises:
        InvalidStateError: If the session is not ``in_progress``/``paused``
        InvalidArgumentError: If the patch would break ledger/pointer invariants
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    next_status(session.status, SessionAction.SYNC)

    ledger = load_ledger(session)
    if patch.answers is not None:
        ledger = _replacement_ledger(session, get_quiz_by_id(db, session.quiz_id), patch.answers)

    if patch.current_question_index is not None and not ledger.contains_index(
        patch.current_question_index
    ):
        raise InvalidArgumentError(
            "Invalid question index",
            details={"index": patch.current_question_index, "total_questions": len(ledger)},
        )

    now = utcnow()
    _touch(session, now)

    if patch.answers is not None:
        _store_ledger(session, ledger)
    if patch.current_question_index is not None:
        session.current_question_index = patch.current_question_index
    if patch.time_remaining is not None:
        session.time_remaining = patch.time_remaining
    if patch.device_info is not None:
        session.device_info = _device_info_payload(patch.device_info, now)
    else:
        session.device_info = {**(session.device_info or {}), "last_sync": now.isoformat()}

    db.commit()

    logger.info(
        "Quiz session synced",
        extra={
            "session_id": str(session.id),
            "user_id": str(user_id),
            "fields": sorted(patch.model_dump(exclude_none=True)),
        },
    )
    return session


# ============================================================================
# Listing
# ============================================================================


def list_active_sessions(db: Session, user_id: UUID) -> list[QuizSession]:
    stmt = (
        select(QuizSession)
        .where(QuizSession.user_id == user_id, QuizSession.status.in_(ACTIVE_STATUSES))
        .order_by(QuizSession.last_active.desc())
    )
    return list(db.execute(stmt).scalars().all())


def list_session_history(
    db: Session,
    user_id: UUID,
    params: PaginationParams,
    query: SessionHistoryQuery,
) -> tuple[list[QuizSession], int]:
    """
    Page through a user's sessions (completed by default).

    Returns:
        (sessions on this page, total matching sessions)
    """
    conditions = [QuizSession.user_id == user_id]
    if query.status is not None:
        conditions.append(QuizSession.status == query.status)
    if query.quiz_id is not None:
        conditions.append(QuizSession.quiz_id == query.quiz_id)

    total = db.execute(select(func.count()).select_from(QuizSession).where(*conditions)).scalar_one()

    sort_column = HISTORY_SORT_COLUMNS[query.sort_by]
    ordering = sort_column.desc() if query.sort_order == "desc" else sort_column.asc()
    stmt = (
        select(QuizSession)
        .where(*conditions)
        .order_by(ordering, QuizSession.created_at.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(db.execute(stmt).scalars().all()), total
