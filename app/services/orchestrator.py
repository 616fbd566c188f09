"""Drive an interview session from creation through the live call to completion.

Reads happen outside transactions; every write is a single
``repo.mutate_session`` read-modify-write. Language model calls run between
the read and the write, so each write re-checks the session status and drops
generated text for sessions that left ``in_progress`` in the meantime.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from app.core.config import Settings
from app.core.errors import (
    ConfigurationError,
    InvalidTransitionError,
    SessionNotFoundError,
    TemplateNotFoundError,
)
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate
from app.schemas.interview import SessionCreate
from app.schemas.provider import ProviderCallConfig
from app.services import session_lifecycle as lifecycle
from app.services import timing
from app.services.assistant_builder import build_assistant_config, webhook_url
from app.services.question_generator import InterviewPhase, QuestionGenerator, TurnContext
from app.services.questions import normalize_questions
from app.services.repository import SessionDefaults, SessionRepository
from app.services.session_lifecycle import SessionStatus
from app.services.voice_provider import VoiceProviderClient

logger = structlog.get_logger()


@dataclass(frozen=True)
class TurnResult:
    text: str
    phase: InterviewPhase
    end_call: bool
    discarded: bool = False


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 strings (``Z`` suffix allowed) or epoch milliseconds."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def is_provider_failure(ended_reason: Any) -> bool:
    """Vapi reports pipeline and provider faults as ``*-error`` / ``pipeline-error-*`` reasons."""
    if not isinstance(ended_reason, str):
        return False
    reason = ended_reason.lower()
    return reason.startswith("pipeline-error") or reason.endswith("-error") or "-error-" in reason


def _candidate_responses(session: InterviewSession) -> list[str]:
    return [
        m["content"]
        for m in session.real_time_messages or []
        if isinstance(m, dict) and m.get("role") == "user" and m.get("content")
    ]


class InterviewOrchestrator:
    def __init__(
        self,
        repo: SessionRepository,
        generator: QuestionGenerator,
        voice_client: VoiceProviderClient,
        settings: Settings,
        defaults: SessionDefaults,
    ):
        self.repo = repo
        self.generator = generator
        self.voice_client = voice_client
        self.settings = settings
        self.defaults = defaults

    async def _get_session(self, session_id: uuid.UUID) -> InterviewSession:
        session = await self.repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found", {"session_id": str(session_id)})
        return session

    def _duration_for(self, template: InterviewTemplate | None) -> int:
        return timing.effective_duration(
            template.duration if template else None,
            self.settings.DEFAULT_INTERVIEW_DURATION_MINUTES,
        )

    async def create_session(self, data: SessionCreate) -> InterviewSession:
        template_id = data.template_id or self.defaults.template_id
        if template_id is None:
            raise ConfigurationError("No template given and no default template is configured")

        template = await self.repo.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError("Template not found", {"template_id": str(template_id)})

        session = InterviewSession(
            id=uuid.uuid4(),
            template_id=template.id,
            interviewer_id=data.interviewer_id or self.defaults.interviewer_id,
            candidate_name=data.candidate_name,
            candidate_email=data.candidate_email,
            position=data.position,
            status=SessionStatus.SCHEDULED.value,
            current_question_index=0,
            asked_questions=[],
            real_time_messages=[],
        )
        session = await self.repo.create_session(session)
        logger.info("session_created", session_id=str(session.id), template_id=str(template.id))
        return session

    async def start_session(
        self, session_id: uuid.UUID, candidate_name: str, position: str
    ) -> ProviderCallConfig:
        """Create the Vapi assistant for a scheduled session.

        The session stays ``scheduled``; it moves to ``in_progress`` when Vapi
        reports the call has started.
        """
        session = await self._get_session(session_id)
        if session.status != SessionStatus.SCHEDULED.value:
            raise InvalidTransitionError(
                f"Cannot start a session that is {session.status}",
                {"session_id": str(session_id), "status": session.status},
            )

        template = await self.repo.get_template(session.template_id)
        if template is None:
            raise TemplateNotFoundError(
                "Template not found", {"template_id": str(session.template_id)}
            )

        config = build_assistant_config(
            template, str(session_id), candidate_name, position, self.settings
        )
        # VoiceProviderError propagates with the session untouched
        assistant_id = await self.voice_client.create_assistant(config)

        def attach(current: InterviewSession) -> None:
            current.provider_assistant_id = assistant_id
            current.candidate_name = candidate_name
            current.position = position

        await self.repo.mutate_session(session_id, attach)
        logger.info("session_assistant_ready", session_id=str(session_id), assistant_id=assistant_id)

        return ProviderCallConfig(
            session_id=str(session_id),
            assistant_id=assistant_id,
            assistant=config,
            max_duration_seconds=config["maxDurationSeconds"],
            webhook_url=webhook_url(self.settings, str(session_id)),
        )

    async def handle_call_started(
        self,
        session_id: uuid.UUID,
        call_id: str | None = None,
        started_at: datetime | None = None,
    ) -> lifecycle.TransitionResult:
        session = await self._get_session(session_id)
        duration = self._duration_for(await self.repo.get_template(session.template_id))

        result = await self.repo.mutate_session(
            session_id,
            lambda current: lifecycle.start(
                current, duration_minutes=duration, call_id=call_id, started_at=started_at
            ),
        )
        logger.info(
            "call_started",
            session_id=str(session_id),
            call_id=call_id,
            applied=result.applied,
            duration_minutes=duration,
        )
        return result

    async def handle_call_ended(
        self, session_id: uuid.UUID, call: dict | None = None, ended_at: datetime | None = None
    ) -> lifecycle.TransitionResult:
        call = call or {}
        session = await self._get_session(session_id)
        duration = self._duration_for(await self.repo.get_template(session.template_id))

        call_started = parse_timestamp(call.get("startedAt"))
        call_ended = parse_timestamp(call.get("endedAt")) or ended_at or datetime.now(timezone.utc)
        cost = call.get("cost")
        breakdown = call.get("costBreakdown")
        ended_reason = call.get("endedReason")

        def apply(current: InterviewSession) -> lifecycle.TransitionResult:
            if current.status == SessionStatus.SCHEDULED.value:
                # The call-start event never arrived or arrived late
                lifecycle.start(
                    current,
                    duration_minutes=duration,
                    call_id=call.get("id"),
                    started_at=call_started or call_ended,
                )
            if is_provider_failure(ended_reason):
                result = lifecycle.fail(current, at=call_ended)
            else:
                result = lifecycle.complete(current, completed_at=call_ended)

            if isinstance(cost, (int, float)) and not isinstance(cost, bool):
                current.provider_cost = float(cost)
            if isinstance(breakdown, dict) and breakdown:
                current.provider_cost_breakdown = breakdown
            if call_started:
                current.duration_seconds = max(0, round((call_ended - call_started).total_seconds()))
            elif current.started_at and current.completed_at:
                current.duration_seconds = max(
                    0, round((current.completed_at - current.started_at).total_seconds())
                )
            return result

        result = await self.repo.mutate_session(session_id, apply)
        logger.info(
            "call_ended",
            session_id=str(session_id),
            call_id=call.get("id"),
            applied=result.applied,
            status=result.status,
            ended_reason=ended_reason,
            cost=cost,
        )
        return result

    async def record_transcript_message(
        self, session_id: uuid.UUID, message: dict, timestamp: Any = None
    ) -> bool:
        if message.get("transcriptType") == "partial":
            return False
        content = message.get("content") or message.get("transcript")
        if not content:
            return False

        entry = {
            "type": message.get("type"),
            "role": message.get("role"),
            "content": content,
            "time": message.get("time"),
            "endTime": message.get("endTime"),
            "secondsFromStart": message.get("secondsFromStart"),
            "timestamp": timestamp,
        }

        def append(current: InterviewSession) -> None:
            current.real_time_messages = [*(current.real_time_messages or []), entry]

        await self.repo.mutate_session(session_id, append)
        return True

    async def next_turn(self, session_id: uuid.UUID, now: datetime | None = None) -> TurnResult:
        now = now or datetime.now(timezone.utc)
        session = await self._get_session(session_id)

        if session.status == SessionStatus.SCHEDULED.value:
            # A turn request means the call is live even if call-start was lost
            await self.handle_call_started(session_id, started_at=now)
            session = await self._get_session(session_id)

        if session.status != SessionStatus.IN_PROGRESS.value:
            logger.info("turn_for_inactive_session", session_id=str(session_id), status=session.status)
            return TurnResult("", InterviewPhase.CONCLUDING, end_call=True, discarded=True)

        template = await self.repo.get_template(session.template_id)
        duration = session.duration_minutes or self._duration_for(template)
        decision = timing.evaluate(
            duration,
            timing.elapsed_minutes_since(session.started_at, now),
            self.settings.DURATION_GRACE_SECONDS,
        )

        ctx = TurnContext(
            candidate_name=session.candidate_name,
            position=session.position,
            questions=normalize_questions(template.questions if template else None),
            question_index=session.current_question_index or 0,
            timing=decision,
            asked_questions=list(session.asked_questions or []),
            candidate_responses=_candidate_responses(session),
            template_title=template.title if template else "",
            category=template.category if template else None,
            difficulty=template.difficulty if template else None,
            description=template.description if template else None,
            instruction=template.instruction if template else None,
            tags=list(template.tags or []) if template else [],
        )
        prompt = await self.generator.next_prompt(ctx)

        def apply(current: InterviewSession) -> bool:
            if current.status != SessionStatus.IN_PROGRESS.value:
                return False
            if prompt.phase is InterviewPhase.CONCLUDING:
                lifecycle.complete(current, completed_at=now)
                return True
            if prompt.phase is InterviewPhase.ASKING_TEMPLATE and prompt.question_index is not None:
                lifecycle.advance_cursor(current, prompt.question_index)
            current.asked_questions = [*(current.asked_questions or []), prompt.text]
            return True

        applied = await self.repo.mutate_session(session_id, apply)
        if not applied:
            logger.info("turn_discarded", session_id=str(session_id), phase=prompt.phase.value)
            return TurnResult("", prompt.phase, end_call=True, discarded=True)

        logger.info(
            "turn_decided",
            session_id=str(session_id),
            phase=prompt.phase.value,
            question_index=prompt.question_index,
            elapsed_minutes=round(decision.elapsed_minutes, 2),
            remaining_minutes=round(decision.remaining_minutes, 2),
            fallback=prompt.fallback,
        )
        return TurnResult(
            text=prompt.text,
            phase=prompt.phase,
            end_call=prompt.phase is InterviewPhase.CONCLUDING,
        )

    async def cancel_session(self, session_id: uuid.UUID) -> lifecycle.TransitionResult:
        return await self.repo.mutate_session(session_id, lambda current: lifecycle.cancel(current))
