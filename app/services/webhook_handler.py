"""Entry point for Vapi server messages.

Every delivery is acknowledged. Processing gets a bounded synchronous
attempt; anything that fails or overruns is logged, and a call that ended
without analysis is handed to the deferred analysis task instead.
"""

import asyncio
import uuid
from typing import Any, Callable

import structlog

from app.core.config import Settings
from app.core.errors import InterviewError
from app.schemas.provider import WebhookAck
from app.services.analysis_ingestion import AnalysisPipeline, IngestOutcome
from app.services.orchestrator import InterviewOrchestrator, parse_timestamp
from app.services.repository import SessionRepository

logger = structlog.get_logger()

AnalysisScheduler = Callable[[str, int], Any]

CALL_END_EVENTS = {"call-end", "end-of-call-report"}
LOG_ONLY_EVENTS = {"hang", "speech-start", "speech-end", "speech-update"}
NO_ANALYSIS_EVENTS = {"call-start", "transcript"} | LOG_ONLY_EVENTS

# Fields the end-of-call report carries next to, rather than inside, ``call``
CALL_SUMMARY_FIELDS = ("startedAt", "endedAt", "endedReason", "cost", "costBreakdown")


def event_type(payload: dict) -> str | None:
    message = payload.get("message")
    if isinstance(message, dict) and isinstance(message.get("type"), str):
        return message["type"]
    kind = payload.get("type")
    return kind if isinstance(kind, str) else None


def call_info(payload: dict) -> dict:
    message = payload.get("message") if isinstance(payload.get("message"), dict) else {}
    call = payload.get("call") or message.get("call") or {}
    info = dict(call) if isinstance(call, dict) else {}
    for key in CALL_SUMMARY_FIELDS:
        if message.get(key) is not None and info.get(key) is None:
            info[key] = message[key]
    return info


class ProviderWebhookHandler:
    def __init__(
        self,
        repo: SessionRepository,
        orchestrator: InterviewOrchestrator,
        pipeline: AnalysisPipeline,
        settings: Settings,
        schedule_analysis: AnalysisScheduler | None = None,
    ):
        self.repo = repo
        self.orchestrator = orchestrator
        self.pipeline = pipeline
        self.settings = settings
        self.schedule_analysis = schedule_analysis

    async def resolve_session_id(self, session_ref: str, call_id: str | None) -> uuid.UUID | None:
        try:
            return uuid.UUID(str(session_ref))
        except ValueError:
            pass
        if call_id:
            session = await self.repo.find_session_by_call_id(call_id)
            if session is not None:
                return session.id
        return None

    async def handle(self, session_ref: str, payload: Any) -> WebhookAck:
        if not isinstance(payload, dict):
            logger.warning("webhook_payload_not_object", session_ref=session_ref)
            return WebhookAck(accepted=True)

        event = event_type(payload)
        call = call_info(payload)
        session_id = await self.resolve_session_id(session_ref, call.get("id"))
        if session_id is None:
            logger.warning("webhook_unknown_session", session_ref=session_ref, event_type=event)
            return WebhookAck(accepted=True, event=event)

        logger.info("webhook_received", session_id=str(session_id), event_type=event)
        try:
            return await asyncio.wait_for(
                self._dispatch(session_id, event, payload, call),
                timeout=self.settings.WEBHOOK_PROCESSING_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning("webhook_processing_timeout", session_id=str(session_id), event_type=event)
        except InterviewError as e:
            logger.warning(
                "webhook_processing_failed",
                session_id=str(session_id),
                event_type=event,
                code=e.code,
                error=e.message,
            )
        except Exception as e:
            logger.error(
                "webhook_processing_error",
                session_id=str(session_id),
                event_type=event,
                error=str(e),
            )

        if event in CALL_END_EVENTS:
            self._schedule(session_id)
        return WebhookAck(accepted=True, event=event)

    async def _dispatch(
        self, session_id: uuid.UUID, event: str | None, payload: dict, call: dict
    ) -> WebhookAck:
        message = payload.get("message") if isinstance(payload.get("message"), dict) else {}
        timestamp = payload.get("timestamp") or message.get("timestamp")

        if event == "call-start":
            await self.orchestrator.handle_call_started(
                session_id,
                call_id=call.get("id"),
                started_at=parse_timestamp(call.get("startedAt")) or parse_timestamp(timestamp),
            )
        elif event == "status-update":
            status = message.get("status") or payload.get("status") or call.get("status")
            if status == "in-progress":
                await self.orchestrator.handle_call_started(
                    session_id,
                    call_id=call.get("id"),
                    started_at=parse_timestamp(call.get("startedAt")) or parse_timestamp(timestamp),
                )
            elif status == "ended":
                await self.orchestrator.handle_call_ended(
                    session_id, call, ended_at=parse_timestamp(timestamp)
                )
        elif event in CALL_END_EVENTS:
            await self.orchestrator.handle_call_ended(
                session_id, call, ended_at=parse_timestamp(timestamp)
            )
        elif event == "transcript":
            await self.orchestrator.record_transcript_message(session_id, message, timestamp)
        elif event in LOG_ONLY_EVENTS:
            logger.info("call_event", session_id=str(session_id), event_type=event)

        outcome = IngestOutcome()
        if event not in NO_ANALYSIS_EVENTS:
            outcome = await self.pipeline.ingest(session_id, payload)

        if event in CALL_END_EVENTS and outcome.analysis is None:
            self._schedule(session_id)

        return WebhookAck(accepted=True, event=event, analysis_applied=bool(outcome.changed))

    def _schedule(self, session_id: uuid.UUID) -> None:
        if self.schedule_analysis is None:
            return
        countdown = self.settings.ANALYSIS_FALLBACK_DELAY_SECONDS
        try:
            self.schedule_analysis(str(session_id), countdown)
        except Exception as e:
            logger.error("analysis_schedule_failed", session_id=str(session_id), error=str(e))
            return
        logger.info("analysis_scheduled", session_id=str(session_id), countdown=countdown)
