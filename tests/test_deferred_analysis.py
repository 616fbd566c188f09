"""Tests for the deferred analysis task body (no broker needed)."""

import uuid

import pytest

from app.services.analysis_generation import AnalysisGenerator
from app.services.analysis_ingestion import AnalysisPipeline
from app.workers.analysis import run_deferred_analysis
from fakes import FakeLanguageModel, FakeVoiceClient, make_session

TRANSCRIPT = (
    "AI: Tell me about yourself.\n"
    "User: I have spent six years building payment APIs in Python and Go."
)
GENERATED = '{"analysis_score": 74, "hiring_recommendation": "Maybe", "strengths": ["Payments"]}'


def _completed(repo, template, **overrides):
    fields = dict(status="completed", provider_call_id="call_1", final_transcript=TRANSCRIPT)
    fields.update(overrides)
    return repo.add_session(make_session(template, **fields))


@pytest.mark.asyncio
async def test_missing_session(repo):
    outcome = await run_deferred_analysis(
        uuid.uuid4(), repo, FakeVoiceClient(), AnalysisPipeline(repo)
    )

    assert outcome == "missing"


@pytest.mark.asyncio
async def test_already_analysed_session_is_left_alone(repo, template):
    session = _completed(repo, template, overall_score=90.0)
    voice = FakeVoiceClient()

    outcome = await run_deferred_analysis(session.id, repo, voice, AnalysisPipeline(repo))

    assert outcome == "already_analysed"
    assert voice.fetched == []


@pytest.mark.asyncio
async def test_provider_analysis_is_preferred(repo, template):
    session = _completed(repo, template)
    voice = FakeVoiceClient(
        call={
            "id": "call_1",
            "analysis": {"successEvaluation": "81", "summary": "Good depth"},
            "artifact": {"recordingUrl": "https://rec/9.wav"},
        }
    )
    llm = FakeLanguageModel(GENERATED)

    outcome = await run_deferred_analysis(
        session.id, repo, voice, AnalysisPipeline(repo, AnalysisGenerator(llm))
    )

    assert outcome == "provider"
    assert voice.fetched == ["call_1"]
    assert session.overall_score == 81
    assert session.recording_url == "https://rec/9.wav"
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_transcript_is_analysed_when_provider_has_nothing(repo, template):
    session = _completed(repo, template)
    llm = FakeLanguageModel(GENERATED)

    outcome = await run_deferred_analysis(
        session.id,
        repo,
        FakeVoiceClient(call={"id": "call_1"}),
        AnalysisPipeline(repo, AnalysisGenerator(llm)),
    )

    assert outcome == "generated"
    assert session.overall_score == 74
    assert session.hiring_recommendation == "Maybe"


@pytest.mark.asyncio
async def test_provider_outage_falls_back_to_transcript(repo, template):
    session = _completed(repo, template)
    llm = FakeLanguageModel(GENERATED)

    outcome = await run_deferred_analysis(
        session.id,
        repo,
        FakeVoiceClient(fail=True),
        AnalysisPipeline(repo, AnalysisGenerator(llm)),
    )

    assert outcome == "generated"
    assert session.strengths == ["Payments"]


@pytest.mark.asyncio
async def test_nothing_to_analyse(repo, template):
    session = _completed(repo, template, provider_call_id=None, final_transcript=None)

    outcome = await run_deferred_analysis(
        session.id,
        repo,
        FakeVoiceClient(),
        AnalysisPipeline(repo, AnalysisGenerator(FakeLanguageModel(GENERATED))),
    )

    assert outcome == "unavailable"
    assert session.overall_score is None
