"""Interview session lifecycle: scheduled -> in_progress -> completed | cancelled | failed.

Transitions mutate the session record passed in and never touch storage;
callers apply them inside a repository read-modify-write. Requests against a
terminal session, or a repeated request for the current status, are no-ops
that report the current status so duplicate or late provider signals are
harmless.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import structlog

from app.core.errors import InvalidTransitionError
from app.models.session import InterviewSession

logger = structlog.get_logger()


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED}
)

ALLOWED_TRANSITIONS = {
    SessionStatus.SCHEDULED: {SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED},
    SessionStatus.IN_PROGRESS: {
        SessionStatus.COMPLETED,
        SessionStatus.CANCELLED,
        SessionStatus.FAILED,
    },
}


@dataclass(frozen=True)
class TransitionResult:
    previous: str
    status: str
    applied: bool


def is_terminal(status: str) -> bool:
    return status in {s.value for s in TERMINAL_STATUSES}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _transition(session: InterviewSession, target: SessionStatus, at: datetime) -> TransitionResult:
    current = session.status
    if is_terminal(current) or current == target.value:
        logger.info(
            "session_transition_ignored",
            session_id=str(session.id),
            status=current,
            requested=target.value,
        )
        return TransitionResult(previous=current, status=current, applied=False)

    if target not in ALLOWED_TRANSITIONS.get(SessionStatus(current), set()):
        raise InvalidTransitionError(
            f"Cannot move session from {current} to {target.value}",
            {"session_id": str(session.id), "status": current, "requested": target.value},
        )

    session.status = target.value
    if target in TERMINAL_STATUSES:
        session.completed_at = at

    logger.info(
        "session_transition",
        session_id=str(session.id),
        previous=current,
        status=target.value,
    )
    return TransitionResult(previous=current, status=target.value, applied=True)


def start(
    session: InterviewSession,
    *,
    duration_minutes: int,
    call_id: str | None = None,
    started_at: datetime | None = None,
) -> TransitionResult:
    """Enter in_progress; the duration is frozen here for the rest of the call."""
    at = started_at or _now()
    result = _transition(session, SessionStatus.IN_PROGRESS, at)
    if result.applied:
        session.started_at = at
        session.duration_minutes = duration_minutes
        if call_id:
            session.provider_call_id = call_id
    elif call_id and not session.provider_call_id and not is_terminal(session.status):
        session.provider_call_id = call_id
    return result


def complete(session: InterviewSession, *, completed_at: datetime | None = None) -> TransitionResult:
    return _transition(session, SessionStatus.COMPLETED, completed_at or _now())


def cancel(session: InterviewSession, *, at: datetime | None = None) -> TransitionResult:
    return _transition(session, SessionStatus.CANCELLED, at or _now())


def fail(session: InterviewSession, *, at: datetime | None = None) -> TransitionResult:
    return _transition(session, SessionStatus.FAILED, at or _now())


def advance_cursor(session: InterviewSession, asked_index: int) -> int:
    """Record that the template question at ``asked_index`` has been asked; never moves backwards."""
    session.current_question_index = max(session.current_question_index or 0, asked_index + 1)
    return session.current_question_index
