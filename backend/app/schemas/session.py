"""Pydantic schemas for quiz sessions."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.common.pagination import PaginatedResponse
from app.models.session import SessionStatus

# ============================================================================
# Shared
# ============================================================================


class DeviceInfo(BaseModel):
    """Client device/sync metadata."""

    platform: str | None = Field(None, max_length=50, description="ios, android, web")
    browser: str | None = Field(None, max_length=100)
    version: str | None = Field(None, max_length=50, description="Client app version")
    user_agent: str | None = Field(None, max_length=500)
    screen_resolution: str | None = Field(None, max_length=50)
    is_online: bool = True
    last_sync: datetime | None = None


class SessionProgress(BaseModel):
    """Counts over the answer ledger."""

    answered_count: int
    flagged_count: int
    skipped_count: int
    total_questions: int
    percentage_complete: int


class AnswerEntryOut(BaseModel):
    """One question's recorded state."""

    question_id: str
    selected_answer: Any | None = None
    is_correct: bool | None = None
    time_spent: int = 0
    flagged: bool = False
    skipped: bool = False
    answered_at: datetime | None = None


# ============================================================================
# Session Schemas
# ============================================================================


class SessionCreate(BaseModel):
    """Request to create (or resume) a session for a quiz."""

    quiz_id: UUID = Field(..., description="Quiz to attempt")
    device_info: DeviceInfo | None = None


class SessionSummaryOut(BaseModel):
    """Session without its answer ledger (list views)."""

    id: UUID
    user_id: UUID
    quiz_id: UUID
    status: SessionStatus
    current_question_index: int
    time_remaining: int
    start_time: datetime | None
    end_time: datetime | None
    last_active: datetime
    score: int | None
    time_taken: int | None
    progress: SessionProgress
    created_at: datetime


class SessionOut(SessionSummaryOut):
    """Full session state including the answer ledger."""

    expired_at: datetime | None = None
    device_info: DeviceInfo | None = None
    answers: list[AnswerEntryOut]
    updated_at: datetime | None = None


class SessionCreateResponse(BaseModel):
    """Response after create-or-resume."""

    created: bool = Field(..., description="False when an active session was resumed")
    session: SessionOut


# ============================================================================
# Answer / Flag / Skip / Navigate
# ============================================================================


class AnswerSubmit(BaseModel):
    """Submit an answer for a question."""

    question_id: UUID
    selected_answer: Any = Field(
        ..., description="Option key, boolean, or matching pairs depending on question format"
    )


class QuestionRef(BaseModel):
    """Target question for flag/skip."""

    question_id: UUID


class LedgerUpdateResponse(BaseModel):
    """Response after an answer, flag, or skip."""

    session_id: UUID
    answer: AnswerEntryOut
    progress: SessionProgress


class NavigateRequest(BaseModel):
    index: int = Field(..., description="Zero-based question index")


class NavigateResponse(BaseModel):
    session_id: UUID
    current_question_index: int
    answer: AnswerEntryOut


# ============================================================================
# Complete / Sync / History
# ============================================================================


class SessionCompleteResponse(BaseModel):
    """Final result of a session."""

    session_id: UUID
    status: SessionStatus
    score: int
    total_points: int
    time_taken: int
    start_time: datetime | None
    end_time: datetime


class AnswerEntryIn(BaseModel):
    """Client-held answer entry used in a sync patch."""

    question_id: UUID
    selected_answer: Any | None = None
    time_spent: int = Field(0, ge=0)
    flagged: bool = False
    skipped: bool = False
    answered_at: datetime | None = None


class SessionSync(BaseModel):
    """Partial patch of client-held state; each provided field is overwritten whole."""

    answers: list[AnswerEntryIn] | None = None
    current_question_index: int | None = None
    time_remaining: int | None = Field(None, ge=0)
    device_info: DeviceInfo | None = None


class SessionHistoryQuery(BaseModel):
    """Filters and ordering for session history."""

    status: SessionStatus | None = SessionStatus.COMPLETED
    quiz_id: UUID | None = None
    sort_by: Literal["end_time", "start_time", "created_at", "score"] = "end_time"
    sort_order: Literal["asc", "desc"] = "desc"


class SessionHistoryResponse(PaginatedResponse[SessionSummaryOut]):
    """Paginated session history."""


# ============================================================================
# Maintenance
# ============================================================================


class ExpireStaleResponse(BaseModel):
    modified_count: int


class PurgeOldResponse(BaseModel):
    deleted_count: int
    days_old: int
