"""Quiz session state machine.

Every engine operation asks this table whether it may run from the session's
current status and what status it leaves behind. Nothing else in the engine
compares statuses by hand.
"""

from enum import Enum

from app.core.app_exceptions import InvalidStateError
from app.core.logging import get_logger
from app.models.session import SessionStatus

logger = get_logger(__name__)


class SessionAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    ANSWER = "answer"
    SKIP = "skip"
    TOGGLE_FLAG = "toggle_flag"
    NAVIGATE = "navigate"
    SYNC = "sync"
    EXPIRE = "expire"


_NS = SessionStatus.NOT_STARTED
_IP = SessionStatus.IN_PROGRESS
_PA = SessionStatus.PAUSED
_CO = SessionStatus.COMPLETED
_EX = SessionStatus.EXPIRED

# action -> {from_status: to_status}
TRANSITIONS: dict[SessionAction, dict[SessionStatus, SessionStatus]] = {
    SessionAction.START: {_NS: _IP, _PA: _IP},
    SessionAction.PAUSE: {_IP: _PA},
    SessionAction.RESUME: {_PA: _IP},
    SessionAction.COMPLETE: {_IP: _CO, _PA: _CO},
    SessionAction.ANSWER: {_IP: _IP},
    SessionAction.SKIP: {_IP: _IP},
    SessionAction.TOGGLE_FLAG: {_IP: _IP, _PA: _PA},
    SessionAction.NAVIGATE: {_IP: _IP, _PA: _PA},
    SessionAction.SYNC: {_IP: _IP, _PA: _PA},
    # Lazy expiry in start() also applies to sessions that were never started
    SessionAction.EXPIRE: {_NS: _EX, _IP: _EX, _PA: _EX},
}


def allowed_from(action: SessionAction) -> tuple[SessionStatus, ...]:
    return tuple(TRANSITIONS[action])


def next_status(status: SessionStatus, action: SessionAction) -> SessionStatus:
    """
    Resolve the status an action leads to.

    Raises:
        InvalidStateError: If the action is not permitted from ``status``
    """
    current = SessionStatus(status)
    target = TRANSITIONS[action].get(current)
    if target is None:
        logger.warning(
            "Session transition rejected",
            extra={"status": current.value, "action": action.value},
        )
        raise InvalidStateError(
            f"Cannot {action.value.replace('_', ' ')} a session that is {current.value}",
            details={
                "status": current.value,
                "action": action.value,
                "allowed_from": [s.value for s in allowed_from(action)],
            },
        )
    return target
