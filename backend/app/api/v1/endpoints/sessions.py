"""Quiz session endpoints."""

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.common.pagination import PageMeta, PaginationParams, pagination_params
from app.core.dependencies import CurrentUser, get_current_user, get_db
from app.models.session import QuizSession, SessionStatus
from app.schemas.session import (
    AnswerEntryOut,
    AnswerSubmit,
    LedgerUpdateResponse,
    NavigateRequest,
    NavigateResponse,
    QuestionRef,
    SessionCompleteResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionHistoryQuery,
    SessionHistoryResponse,
    SessionOut,
    SessionProgress,
    SessionSummaryOut,
    SessionSync,
)
from app.services import session_engine
from app.services.answer_ledger import AnswerEntry, LedgerProgress

router = APIRouter()

HISTORY_ANY_STATUS = "all"

DbSession = Annotated[Session, Depends(get_db)]
User = Annotated[CurrentUser, Depends(get_current_user)]


# ============================================================================
# Serialization
# ============================================================================


def _progress_out(progress: LedgerProgress) -> SessionProgress:
    return SessionProgress(
        answered_count=progress.answered,
        flagged_count=progress.flagged,
        skipped_count=progress.skipped,
        total_questions=progress.total,
        percentage_complete=progress.percentage_complete,
    )


def _entry_out(entry: AnswerEntry) -> AnswerEntryOut:
    return AnswerEntryOut(**entry.to_dict())


def _summary_fields(session: QuizSession) -> dict:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "quiz_id": session.quiz_id,
        "status": session.status,
        "current_question_index": session.current_question_index,
        "time_remaining": session.time_remaining,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "last_active": session.last_active,
        "score": session.score,
        "time_taken": session.time_taken,
        "progress": _progress_out(session_engine.session_progress(session)),
        "created_at": session.created_at,
    }


def session_summary_out(session: QuizSession) -> SessionSummaryOut:
    return SessionSummaryOut(**_summary_fields(session))


def session_out(session: QuizSession) -> SessionOut:
    ledger = session_engine.load_ledger(session)
    return SessionOut(
        **_summary_fields(session),
        expired_at=session.expired_at,
        device_info=session.device_info,
        answers=[_entry_out(entry) for entry in ledger],
        updated_at=session.updated_at,
    )


def _ledger_update_out(update: session_engine.LedgerUpdate) -> LedgerUpdateResponse:
    return LedgerUpdateResponse(
        session_id=update.session.id,
        answer=_entry_out(update.entry),
        progress=_progress_out(update.progress),
    )


# ============================================================================
# Create / List
# ============================================================================


@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    response: Response,
    db: DbSession,
    current_user: User,
):
    """
    Create a session for a quiz, or return the caller's active one.

    Returns 201 when a new session was created and 200 when an existing
    active session was resumed.
    """
    session, created = session_engine.create_or_resume_session(
        db, current_user.id, payload.quiz_id, payload.device_info
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return SessionCreateResponse(created=created, session=session_out(session))


@router.get("/active", response_model=list[SessionSummaryOut])
def list_active_sessions(db: DbSession, current_user: User):
    """List the caller's not-started, in-progress, and paused sessions."""
    sessions = session_engine.list_active_sessions(db, current_user.id)
    return [session_summary_out(s) for s in sessions]


@router.get("/history", response_model=SessionHistoryResponse)
def list_session_history(
    db: DbSession,
    current_user: User,
    params: Annotated[PaginationParams, Depends(pagination_params)],
    status_filter: Annotated[
        SessionStatus | Literal["all"],
        Query(alias="status", description="Session status, or \"all\" for every status"),
    ] = SessionStatus.COMPLETED,
    quiz_id: Annotated[UUID | None, Query()] = None,
    sort_by: Annotated[
        Literal["end_time", "start_time", "created_at", "score"], Query()
    ] = "end_time",
    sort_order: Annotated[Literal["asc", "desc"], Query()] = "desc",
):
    """Paginated session history, completed sessions by default."""
    query = SessionHistoryQuery(
        status=None if status_filter == HISTORY_ANY_STATUS else status_filter,
        quiz_id=quiz_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    sessions, total = session_engine.list_session_history(db, current_user.id, params, query)
    return SessionHistoryResponse(
        items=[session_summary_out(s) for s in sessions],
        pagination=PageMeta.build(params, total),
    )


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: UUID, db: DbSession, current_user: User):
    """Full session state including the answer ledger."""
    return session_out(session_engine.get_session(db, session_id, current_user.id))


# ============================================================================
# Lifecycle
# ============================================================================


@router.post("/{session_id}/start", response_model=SessionOut)
def start_session(session_id: UUID, db: DbSession, current_user: User):
    return session_out(session_engine.start_session(db, session_id, current_user.id))


@router.post("/{session_id}/pause", response_model=SessionOut)
def pause_session(session_id: UUID, db: DbSession, current_user: User):
    return session_out(session_engine.pause_session(db, session_id, current_user.id))


@router.post("/{session_id}/resume", response_model=SessionOut)
def resume_session(session_id: UUID, db: DbSession, current_user: User):
    return session_out(session_engine.resume_session(db, session_id, current_user.id))


@router.post("/{session_id}/complete", response_model=SessionCompleteResponse)
def complete_session(session_id: UUID, db: DbSession, current_user: User):
    """Score and close the session. Repeating the call returns the same result."""
    result = session_engine.complete_session(db, session_id, current_user.id)
    session = result.session
    return SessionCompleteResponse(
        session_id=session.id,
        status=session.status,
        score=session.score,
        total_points=result.total_points,
        time_taken=session.time_taken,
        start_time=session.start_time,
        end_time=session.end_time,
    )


# ============================================================================
# Answers / Navigation / Sync
# ============================================================================


@router.post("/{session_id}/answer", response_model=LedgerUpdateResponse)
def submit_answer(
    session_id: UUID,
    payload: AnswerSubmit,
    db: DbSession,
    current_user: User,
):
    update = session_engine.submit_answer(
        db, session_id, current_user.id, payload.question_id, payload.selected_answer
    )
    return _ledger_update_out(update)


@router.post("/{session_id}/flag", response_model=LedgerUpdateResponse)
def toggle_flag(
    session_id: UUID,
    payload: QuestionRef,
    db: DbSession,
    current_user: User,
):
    update = session_engine.toggle_question_flag(db, session_id, current_user.id, payload.question_id)
    return _ledger_update_out(update)


@router.post("/{session_id}/skip", response_model=LedgerUpdateResponse)
def skip_question(
    session_id: UUID,
    payload: QuestionRef,
    db: DbSession,
    current_user: User,
):
    update = session_engine.skip_question(db, session_id, current_user.id, payload.question_id)
    return _ledger_update_out(update)


@router.post("/{session_id}/navigate", response_model=NavigateResponse)
def navigate(
    session_id: UUID,
    payload: NavigateRequest,
    db: DbSession,
    current_user: User,
):
    session, entry = session_engine.navigate_to_question(
        db, session_id, current_user.id, payload.index
    )
    return NavigateResponse(
        session_id=session.id,
        current_question_index=session.current_question_index,
        answer=_entry_out(entry),
    )


@router.post("/{session_id}/sync", response_model=SessionOut)
def sync_session(
    session_id: UUID,
    payload: SessionSync,
    db: DbSession,
    current_user: User,
):
    """Overwrite client-held fields after a reconnect."""
    return session_out(session_engine.sync_session(db, session_id, current_user.id, payload))
