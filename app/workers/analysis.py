import asyncio
import uuid

import structlog
from celery import shared_task

from app.core.errors import VoiceProviderError
from app.services.analysis_ingestion import AnalysisPipeline, has_analysis
from app.services.repository import SessionRepository
from app.services.voice_provider import VoiceProviderClient

logger = structlog.get_logger()


@shared_task(name="analysis.generate", bind=True, max_retries=3)
def generate_analysis(self, session_id: str):
    logger.info("analysis_task_start", session_id=session_id)
    try:
        outcome = asyncio.run(_run(uuid.UUID(session_id)))
    except Exception as e:
        logger.error("analysis_task_error", session_id=session_id, error=str(e))
        raise self.retry(exc=e, countdown=60)
    logger.info("analysis_task_done", session_id=session_id, outcome=outcome)
    return outcome


def schedule_analysis(session_id: str, countdown: int) -> None:
    generate_analysis.apply_async(args=[session_id], countdown=countdown)


async def _run(session_id: uuid.UUID) -> str:
    from app.core.config import get_settings
    from app.core.database import worker_session_factory
    from app.core.dependencies import build_clients
    from app.services.analysis_generation import AnalysisGenerator
    from app.services.repository import SqlSessionRepository

    settings = get_settings()
    repo = SqlSessionRepository(worker_session_factory())
    llm, voice_client = build_clients(settings)
    pipeline = AnalysisPipeline(
        repo,
        AnalysisGenerator(llm, timeout=settings.ANALYSIS_TIMEOUT_SECONDS),
        min_transcript_chars=settings.MIN_TRANSCRIPT_CHARS,
    )
    try:
        return await run_deferred_analysis(session_id, repo, voice_client, pipeline)
    finally:
        await voice_client.aclose()
        await llm.aclose()


async def run_deferred_analysis(
    session_id: uuid.UUID,
    repo: SessionRepository,
    voice_client: VoiceProviderClient,
    pipeline: AnalysisPipeline,
) -> str:
    """Fill in analysis for a call whose end-of-call report carried none.

    Vapi is asked for the call first; the transcript is analysed only when
    Vapi still has no analysis.
    """
    session = await repo.get_session(session_id)
    if session is None:
        logger.warning("analysis_task_session_missing", session_id=str(session_id))
        return "missing"
    if has_analysis(session):
        return "already_analysed"

    if session.provider_call_id:
        try:
            call = await voice_client.get_call(session.provider_call_id)
        except VoiceProviderError as e:
            logger.warning("analysis_task_call_fetch_failed", session_id=str(session_id), error=e.message)
        else:
            outcome = await pipeline.ingest(session_id, {"call": call, "artifact": call.get("artifact")})
            if outcome.analysis is not None and not outcome.analysis.is_empty():
                return "provider"

    session = await repo.get_session(session_id)
    if await pipeline.regenerate(session) is not None:
        return "generated"
    return "unavailable"
