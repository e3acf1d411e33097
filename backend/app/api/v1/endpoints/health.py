"""Liveness and readiness probes."""

from typing import Literal

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import get_request_id
from app.core.logging import get_logger
from app.db.session import get_db

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    status: Literal["ok", "down"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    status: Literal["ok", "down"]
    checks: dict[str, ReadinessCheck]
    request_id: str


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
def health_check() -> HealthResponse:
    """Returns 200 while the process is serving requests."""
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness check")
def readiness_check(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> ReadinessResponse:
    """Verifies database connectivity; responds 503 when the database is unreachable."""
    checks: dict[str, ReadinessCheck] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["db"] = ReadinessCheck(status="ok")
    except SQLAlchemyError as e:
        logger.error("Readiness database check failed", extra={"error": str(e)})
        checks["db"] = ReadinessCheck(status="down", message=str(e))

    overall = "ok" if all(c.status == "ok" for c in checks.values()) else "down"
    if overall != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=overall, checks=checks, request_id=get_request_id(request))
