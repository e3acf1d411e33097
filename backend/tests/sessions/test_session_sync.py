"""Tests for reconnect/recovery sync of client-held session state."""

import pytest

from app.core.app_exceptions import InvalidArgumentError, InvalidStateError
from app.models.session import SessionStatus
from app.schemas.session import AnswerEntryIn, DeviceInfo, SessionSync
from app.services import session_engine
from tests.helpers.seed import question_ids


def _entries(quiz, overrides=None):
    overrides = overrides or {}
    return [
        AnswerEntryIn(question_id=qid, **overrides.get(position, {}))
        for position, qid in enumerate(question_ids(quiz))
    ]


def test_sync_replaces_ledger_and_regrades(db, quiz, user_id, started):
    answers = _entries(
        quiz,
        {
            0: {"selected_answer": "A", "time_spent": 12, "is_correct": False},
            1: {"selected_answer": "D", "flagged": True},
            2: {"skipped": True},
        },
    )
    patch = SessionSync(answers=answers, current_question_index=2, time_remaining=321)

    session = session_engine.sync_session(db, started.id, user_id, patch)

    first, second, third = session_engine.load_ledger(session)
    assert first.selected_answer == "A"
    assert first.is_correct is True
    assert first.time_spent == 12
    assert second.is_correct is False
    assert second.flagged is True
    assert third.skipped is True
    assert session.current_question_index == 2
    assert session.time_remaining == 321
    assert session.device_info["last_sync"] is not None


def test_sync_leaves_absent_fields_untouched(db, quiz, user_id, started):
    session_engine.submit_answer(db, started.id, user_id, question_ids(quiz)[0], "A")
    before = list(started.answers)

    session = session_engine.sync_session(
        db, started.id, user_id, SessionSync(device_info=DeviceInfo(platform="ios", is_online=True))
    )

    assert session.answers == before
    assert session.current_question_index == 0
    assert session.device_info["platform"] == "ios"


def test_sync_rejects_reordered_or_partial_ledgers(db, quiz, user_id, started):
    reordered = list(reversed(_entries(quiz)))
    with pytest.raises(InvalidArgumentError):
        session_engine.sync_session(db, started.id, user_id, SessionSync(answers=reordered))

    with pytest.raises(InvalidArgumentError):
        session_engine.sync_session(db, started.id, user_id, SessionSync(answers=_entries(quiz)[:2]))


def test_sync_rejects_answered_and_skipped_entry(db, quiz, user_id, started):
    answers = _entries(quiz, {1: {"selected_answer": "B", "skipped": True}})
    with pytest.raises(InvalidArgumentError):
        session_engine.sync_session(db, started.id, user_id, SessionSync(answers=answers))


def test_sync_rejects_out_of_range_index(db, user_id, started):
    with pytest.raises(InvalidArgumentError):
        session_engine.sync_session(db, started.id, user_id, SessionSync(current_question_index=3))


def test_sync_allowed_while_paused(db, user_id, started):
    session_engine.pause_session(db, started.id, user_id)
    session = session_engine.sync_session(db, started.id, user_id, SessionSync(time_remaining=42))
    assert session.status == SessionStatus.PAUSED
    assert session.time_remaining == 42


def test_sync_rejected_after_completion(db, user_id, started):
    session_engine.complete_session(db, started.id, user_id)
    with pytest.raises(InvalidStateError):
        session_engine.sync_session(db, started.id, user_id, SessionSync(time_remaining=1))
