"""Tests for the quiz session engine (service layer)."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.common.clock import utcnow
from app.common.pagination import PaginationParams
from app.core.app_exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    SessionExpiredError,
)
from app.models.session import QuizSession, SessionStatus
from app.schemas.session import DeviceInfo, SessionHistoryQuery
from app.services import session_engine
from tests.helpers.seed import create_quiz, question_ids


def _backdate(db, session: QuizSession, **delta) -> None:
    session.last_active = utcnow() - timedelta(**delta)
    db.commit()


# ============================================================================
# Create / resume
# ============================================================================


def test_create_initializes_blank_ledger(db, quiz, user_id):
    session, created = session_engine.create_or_resume_session(
        db, user_id, quiz.id, DeviceInfo(platform="web", browser="firefox")
    )

    assert created is True
    assert session.status == SessionStatus.NOT_STARTED
    assert session.current_question_index == 0
    assert session.time_remaining == 600
    assert session.start_time is None
    assert [a["question_id"] for a in session.answers] == question_ids(quiz)
    assert all(a["selected_answer"] is None for a in session.answers)
    assert session.device_info["platform"] == "web"
    assert session.device_info["last_sync"] is not None


def test_create_returns_existing_active_session(db, quiz, user_id):
    first, created_first = session_engine.create_or_resume_session(db, user_id, quiz.id)
    second, created_second = session_engine.create_or_resume_session(db, user_id, quiz.id)

    assert created_first is True
    assert created_second is False
    assert second.id == first.id
    count = db.execute(select(func.count()).select_from(QuizSession)).scalar_one()
    assert count == 1


def test_create_after_completion_starts_a_new_attempt(db, quiz, user_id, started):
    session_engine.complete_session(db, started.id, user_id)

    session, created = session_engine.create_or_resume_session(db, user_id, quiz.id)

    assert created is True
    assert session.id != started.id


def test_create_for_unknown_quiz(db, user_id):
    with pytest.raises(NotFoundError):
        session_engine.create_or_resume_session(db, user_id, uuid.uuid4())


def test_create_for_empty_quiz(db, user_id):
    empty = create_quiz(db, points=[])
    with pytest.raises(InvalidArgumentError):
        session_engine.create_or_resume_session(db, user_id, empty.id)


# ============================================================================
# Lifecycle
# ============================================================================


def test_full_lifecycle_scores_correct_answers(db, quiz, user_id, started):
    q1, q2, q3 = question_ids(quiz)
    assert started.status == SessionStatus.IN_PROGRESS
    assert started.start_time is not None

    session_engine.submit_answer(db, started.id, user_id, q1, "C")
    session_engine.submit_answer(db, started.id, user_id, q2, "B")
    session_engine.skip_question(db, started.id, user_id, q3)

    result = session_engine.complete_session(db, started.id, user_id)

    assert result.session.status == SessionStatus.COMPLETED
    assert result.session.score == 20
    assert result.total_points == 35
    assert result.session.end_time is not None
    assert result.session.time_taken >= 0


def test_complete_is_idempotent(db, quiz, user_id, started):
    session_engine.submit_answer(db, started.id, user_id, question_ids(quiz)[0], "A")
    first = session_engine.complete_session(db, started.id, user_id)
    end_time = first.session.end_time

    again = session_engine.complete_session(db, started.id, user_id)

    assert again.session.score == 10
    assert again.session.end_time == end_time


def test_complete_from_paused(db, user_id, started):
    session_engine.pause_session(db, started.id, user_id)
    result = session_engine.complete_session(db, started.id, user_id)
    assert result.session.status == SessionStatus.COMPLETED
    assert result.session.score == 0


def test_complete_not_started_is_rejected(db, quiz, user_id):
    session, _ = session_engine.create_or_resume_session(db, user_id, quiz.id)
    with pytest.raises(InvalidStateError):
        session_engine.complete_session(db, session.id, user_id)


def test_pause_and_resume(db, user_id, started):
    paused = session_engine.pause_session(db, started.id, user_id)
    assert paused.status == SessionStatus.PAUSED

    with pytest.raises(InvalidStateError):
        session_engine.pause_session(db, started.id, user_id)

    resumed = session_engine.resume_session(db, started.id, user_id)
    assert resumed.status == SessionStatus.IN_PROGRESS


def test_start_from_paused_keeps_original_start_time(db, user_id, started):
    original = started.start_time
    session_engine.pause_session(db, started.id, user_id)
    restarted = session_engine.start_session(db, started.id, user_id)
    assert restarted.status == SessionStatus.IN_PROGRESS
    assert restarted.start_time == original


def test_clock_runs_only_while_in_progress(db, user_id, started):
    _backdate(db, started, seconds=100)
    paused = session_engine.pause_session(db, started.id, user_id)
    assert 499 <= paused.time_remaining <= 500
    remaining = paused.time_remaining

    _backdate(db, paused, seconds=1000)
    resumed = session_engine.resume_session(db, started.id, user_id)
    assert resumed.time_remaining == remaining


def test_time_remaining_never_negative(db, user_id, started):
    _backdate(db, started, seconds=5000)
    paused = session_engine.pause_session(db, started.id, user_id)
    assert paused.time_remaining == 0


# ============================================================================
# Expiry
# ============================================================================


def test_resume_after_inactivity_expires(db, user_id, started):
    session_engine.pause_session(db, started.id, user_id)
    _backdate(db, started, hours=25)

    with pytest.raises(SessionExpiredError):
        session_engine.resume_session(db, started.id, user_id)

    stored = db.get(QuizSession, started.id)
    assert stored.status == SessionStatus.EXPIRED
    assert stored.expired_at is not None
    assert stored.active_marker is None


def test_start_after_inactivity_expires_never_started_session(db, quiz, user_id):
    session, _ = session_engine.create_or_resume_session(db, user_id, quiz.id)
    _backdate(db, session, hours=48)

    with pytest.raises(SessionExpiredError):
        session_engine.start_session(db, session.id, user_id)

    assert db.get(QuizSession, session.id).status == SessionStatus.EXPIRED
    with pytest.raises(InvalidStateError):
        session_engine.complete_session(db, session.id, user_id)


def test_expired_session_frees_the_quiz_for_a_new_attempt(db, quiz, user_id, started):
    session_engine.pause_session(db, started.id, user_id)
    _backdate(db, started, hours=25)
    with pytest.raises(SessionExpiredError):
        session_engine.resume_session(db, started.id, user_id)

    session, created = session_engine.create_or_resume_session(db, user_id, quiz.id)
    assert created is True
    assert session.id != started.id


# ============================================================================
# Answers, flags, skips
# ============================================================================


def test_answer_requires_in_progress(db, quiz, user_id, started):
    session_engine.pause_session(db, started.id, user_id)
    with pytest.raises(InvalidStateError):
        session_engine.submit_answer(db, started.id, user_id, question_ids(quiz)[0], "A")


def test_answer_after_completion_is_rejected(db, quiz, user_id, started):
    session_engine.complete_session(db, started.id, user_id)
    with pytest.raises(InvalidStateError):
        session_engine.submit_answer(db, started.id, user_id, question_ids(quiz)[0], "A")


def test_answer_unknown_question(db, user_id, started):
    with pytest.raises(NotFoundError):
        session_engine.submit_answer(db, started.id, user_id, uuid.uuid4(), "A")


def test_answer_records_correctness_and_progress(db, quiz, user_id, started):
    q1 = question_ids(quiz)[0]
    update = session_engine.submit_answer(db, started.id, user_id, q1, "A")

    assert update.entry.is_correct is True
    assert update.entry.answered_at is not None
    assert update.progress.answered == 1
    assert update.progress.total == 3

    update = session_engine.submit_answer(db, started.id, user_id, q1, "D")
    assert update.entry.is_correct is False
    assert update.progress.answered == 1


def test_answered_and_skipped_are_mutually_exclusive(db, quiz, user_id, started):
    q2 = question_ids(quiz)[1]
    session_engine.submit_answer(db, started.id, user_id, q2, "B")
    skipped = session_engine.skip_question(db, started.id, user_id, q2)
    assert skipped.entry.skipped is True
    assert skipped.entry.selected_answer is None
    assert skipped.progress.answered == 0

    answered = session_engine.submit_answer(db, started.id, user_id, q2, "B")
    assert answered.entry.skipped is False
    assert answered.progress.skipped == 0


def test_flag_allowed_while_paused(db, quiz, user_id, started):
    q3 = question_ids(quiz)[2]
    session_engine.pause_session(db, started.id, user_id)

    update = session_engine.toggle_question_flag(db, started.id, user_id, q3)
    assert update.entry.flagged is True
    assert update.session.status == SessionStatus.PAUSED

    with pytest.raises(InvalidStateError):
        session_engine.skip_question(db, started.id, user_id, q3)


# ============================================================================
# Navigation and ownership
# ============================================================================


def test_navigate_within_bounds(db, quiz, user_id, started):
    session, entry = session_engine.navigate_to_question(db, started.id, user_id, 2)
    assert session.current_question_index == 2
    assert entry.question_id == question_ids(quiz)[2]


@pytest.mark.parametrize("index", [-1, 3, 100])
def test_navigate_out_of_bounds_leaves_pointer(db, user_id, started, index):
    with pytest.raises(InvalidArgumentError):
        session_engine.navigate_to_question(db, started.id, user_id, index)
    assert db.get(QuizSession, started.id).current_question_index == 0


def test_navigate_rejected_before_start(db, quiz, user_id):
    session, _ = session_engine.create_or_resume_session(db, user_id, quiz.id)
    with pytest.raises(InvalidStateError):
        session_engine.navigate_to_question(db, session.id, user_id, 1)


def test_other_users_cannot_touch_session(db, quiz, user_id, other_user_id, started):
    with pytest.raises(ForbiddenError):
        session_engine.get_session(db, started.id, other_user_id)
    with pytest.raises(ForbiddenError):
        session_engine.submit_answer(db, started.id, other_user_id, question_ids(quiz)[0], "A")


def test_unknown_session(db, user_id):
    with pytest.raises(NotFoundError):
        session_engine.get_session(db, uuid.uuid4(), user_id)


# ============================================================================
# Listing
# ============================================================================


def test_list_active_sessions(db, quiz, user_id, other_user_id, started):
    second_quiz = create_quiz(db, points=[1])
    not_started, _ = session_engine.create_or_resume_session(db, user_id, second_quiz.id)
    session_engine.create_or_resume_session(db, other_user_id, quiz.id)

    active = session_engine.list_active_sessions(db, user_id)

    assert {s.id for s in active} == {started.id, not_started.id}


def test_history_defaults_to_completed(db, quiz, user_id, started):
    session_engine.complete_session(db, started.id, user_id)
    other_quiz = create_quiz(db, points=[3, 4])
    other, _ = session_engine.create_or_resume_session(db, user_id, other_quiz.id)
    session_engine.start_session(db, other.id, user_id)
    session_engine.complete_session(db, other.id, user_id)
    session_engine.create_or_resume_session(db, user_id, quiz.id)

    items, total = session_engine.list_session_history(
        db, user_id, PaginationParams(page=1, limit=10), SessionHistoryQuery()
    )
    assert total == 2
    assert {s.id for s in items} == {started.id, other.id}

    items, total = session_engine.list_session_history(
        db, user_id, PaginationParams(page=1, limit=1), SessionHistoryQuery(quiz_id=quiz.id)
    )
    assert total == 1
    assert [s.id for s in items] == [started.id]

    items, total = session_engine.list_session_history(
        db, user_id, PaginationParams(page=1, limit=10),
        SessionHistoryQuery(status=SessionStatus.NOT_STARTED),
    )
    assert total == 1
