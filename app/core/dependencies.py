from dataclasses import dataclass

from fastapi import Request

from app.core.config import Settings
from app.services.analysis_generation import AnalysisGenerator
from app.services.analysis_ingestion import AnalysisPipeline
from app.services.llm import AnthropicLanguageModel, LanguageModel
from app.services.orchestrator import InterviewOrchestrator
from app.services.question_generator import QuestionGenerator
from app.services.repository import SessionDefaults, SessionRepository
from app.services.voice_provider import VapiClient, VoiceProviderClient
from app.services.webhook_handler import AnalysisScheduler, ProviderWebhookHandler


@dataclass
class Services:
    """Collaborators built once per process and shared by request handlers."""

    settings: Settings
    repo: SessionRepository
    llm: LanguageModel
    voice_client: VoiceProviderClient
    orchestrator: InterviewOrchestrator
    pipeline: AnalysisPipeline
    webhooks: ProviderWebhookHandler

    async def aclose(self) -> None:
        for client in (self.llm, self.voice_client):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()


def assemble_services(
    settings: Settings,
    repo: SessionRepository,
    llm: LanguageModel,
    voice_client: VoiceProviderClient,
    defaults: SessionDefaults,
    schedule_analysis: AnalysisScheduler | None = None,
) -> Services:
    orchestrator = InterviewOrchestrator(
        repo,
        QuestionGenerator(llm, timeout=settings.LLM_TIMEOUT_SECONDS),
        voice_client,
        settings,
        defaults,
    )
    pipeline = AnalysisPipeline(
        repo,
        AnalysisGenerator(llm, timeout=settings.ANALYSIS_TIMEOUT_SECONDS),
        min_transcript_chars=settings.MIN_TRANSCRIPT_CHARS,
    )
    webhooks = ProviderWebhookHandler(repo, orchestrator, pipeline, settings, schedule_analysis)
    return Services(
        settings=settings,
        repo=repo,
        llm=llm,
        voice_client=voice_client,
        orchestrator=orchestrator,
        pipeline=pipeline,
        webhooks=webhooks,
    )


def build_clients(settings: Settings) -> tuple[AnthropicLanguageModel, VapiClient]:
    llm = AnthropicLanguageModel(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.ANTHROPIC_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
    voice_client = VapiClient(
        api_key=settings.VAPI_API_KEY,
        base_url=settings.VAPI_BASE_URL,
        timeout=settings.VAPI_TIMEOUT_SECONDS,
    )
    return llm, voice_client


def get_services(request: Request) -> Services:
    return request.app.state.services
