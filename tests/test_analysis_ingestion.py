"""Tests for post-call analysis extraction, normalization and merging."""

import json
import uuid

import pytest

from app.core.errors import IngestError, SessionNotFoundError
from app.schemas.interview import AnalysisResult
from app.services.analysis_generation import AnalysisGenerator
from app.services.analysis_ingestion import (
    AnalysisPipeline,
    RawAnalysis,
    extract,
    extract_transcript,
    merge,
    normalize,
    to_score,
)
from fakes import FakeLanguageModel, make_session

LONG_TRANSCRIPT = (
    "AI: Tell me about yourself.\n"
    "User: I have spent six years building payment APIs in Python and Go."
)


def _generated_reply(**overrides):
    data = {
        "analysis_score": 78,
        "category_scores": {"communication": 80, "technical": 75},
        "strengths": ["Clear examples"],
        "areas_for_improvement": ["System design depth"],
        "hiring_recommendation": "Yes",
        "analysis_feedback": "Solid candidate.",
        "key_insights": ["Owns production systems"],
        "question_scores": [{"question": "Tell me about yourself", "responseQuality": 82}],
        "interview_metrics": {"engagement_level": 90},
    }
    data.update(overrides)
    return json.dumps(data)


# --- Extraction ---


def test_message_analysis_wins_over_other_shapes():
    payload = {
        "message": {"analysis": {"summary": "From message"}},
        "call": {"analysis": {"summary": "From call"}},
        "summary": "Flattened",
    }

    raw = extract(payload)

    assert raw.source == "message.analysis"
    assert raw.summary == "From message"


def test_empty_shape_falls_through_to_next():
    payload = {
        "message": {"analysis": {"summary": ""}, "call": {"analysis": {"successEvaluation": "8"}}},
    }

    raw = extract(payload)

    assert raw.source == "call.analysis"
    assert raw.success_evaluation == "8"


def test_success_evaluation_artifact_reads_root_fields():
    payload = {"artifact": {"type": "success-evaluation", "score": 72, "successful": True}}

    raw = extract(payload)
    result = normalize(raw)

    assert raw.source == "artifact.success-evaluation"
    assert result.overall_score == 72
    assert result.hiring_recommendation == "Yes"


def test_structured_data_artifact():
    raw = extract({"artifact": {"type": "structured-data", "data": {"overallScore": 64}}})

    assert raw.source == "artifact.structured-data"
    assert normalize(raw).overall_score == 64


def test_flattened_payload():
    raw = extract({"type": "analysis", "structuredData": {"strengths": ["Curious"]}})

    assert raw.source == "flattened"
    assert normalize(raw).strengths == ["Curious"]


@pytest.mark.parametrize(
    "payload",
    [None, "text", [], {}, {"type": "status-update"}, {"message": {"type": "end-of-call-report"}}],
)
def test_payloads_without_analysis(payload):
    assert extract(payload) is None


def test_extract_transcript_from_nested_artifact():
    payload = {
        "message": {
            "type": "end-of-call-report",
            "artifact": {"transcript": "AI: Hi\nUser: Hello", "recordingUrl": "https://rec/1.wav"},
        }
    }

    assert extract_transcript(payload) == ("AI: Hi\nUser: Hello", "https://rec/1.wav")


# --- Normalization ---


def test_structured_score_takes_precedence_over_evaluation():
    raw = RawAnalysis(
        source="test",
        success_evaluation={"score": 60},
        structured_data={"overallScore": 85},
    )

    assert normalize(raw).overall_score == 85


def test_json_text_evaluation_is_parsed():
    raw = RawAnalysis(source="test", success_evaluation='{"score": "72", "feedback": "Good depth"}')
    result = normalize(raw)

    assert result.overall_score == 72
    assert result.feedback == "Good depth"


def test_summary_average_is_scaled_to_percent():
    raw = RawAnalysis(
        source="test",
        summary={"averageScore": 8, "overallFlow": "Confident start", "questions": [
            {"question": "Tell me about yourself", "score": 90, "keyPoints": ["payments"]}
        ]},
    )
    result = normalize(raw)

    assert result.overall_score == 80
    assert result.key_insights == ["Confident start"]
    assert result.question_scores[0].question == "Tell me about yourself"
    assert result.question_scores[0].response_quality == 90
    assert result.question_scores[0].key_points == ["payments"]


def test_summary_question_scores_are_scaled_from_ten_point():
    raw = RawAnalysis(
        source="test",
        summary='[{"question": "Why this role?", "answer": "Growth", "score": 8, "evaluation": "Clear"}]',
    )
    result = normalize(raw)

    assert result.question_scores[0].response_quality == 80
    assert result.question_scores[0].feedback == "Clear"


def test_structured_question_scores_stay_on_hundred_point():
    raw = RawAnalysis(
        source="test",
        structured_data={"questionResponses": [{"question": "Why this role?", "responseQuality": 8}]},
    )

    assert normalize(raw).question_scores[0].response_quality == 8


def test_flat_category_keys_and_aliases():
    raw = RawAnalysis(
        source="test",
        structured_data={"communication": 70, "technical": "65", "fit": 90, "unrelated": 10},
    )

    assert normalize(raw).category_scores == {
        "communication": 70,
        "technical": 65,
        "culturalFit": 90,
    }


def test_recommendation_from_unsuccessful_evaluation():
    raw = RawAnalysis(source="test", success_evaluation={"successful": False})

    assert normalize(raw).hiring_recommendation == "No"


@pytest.mark.parametrize(
    "value,expected",
    [(140, 100.0), (-5, 0.0), ("85%", 85.0), (" 42 ", 42.0), ("n/a", None), (True, None), (None, None)],
)
def test_to_score(value, expected):
    assert to_score(value) == expected


# --- Merge ---


def test_merge_never_replaces_values_with_empty_ones(template):
    session = make_session(template, overall_score=80.0, strengths=["Clear examples"])

    changed = merge(session, AnalysisResult(areas_for_improvement=["Testing"]))

    assert changed == ["areas_for_improvement"]
    assert session.overall_score == 80.0
    assert session.strengths == ["Clear examples"]


def test_merge_replaces_with_richer_list(template):
    session = make_session(template, strengths=["A"])

    assert merge(session, AnalysisResult(strengths=[])) == []
    assert session.strengths == ["A"]

    assert merge(session, AnalysisResult(strengths=["A", "B"])) == ["strengths"]
    assert session.strengths == ["A", "B"]


@pytest.mark.asyncio
async def test_status_ping_is_ingested_without_changes(repo, template):
    session = repo.add_session(make_session(template, status="in_progress"))

    outcome = await AnalysisPipeline(repo).ingest(session.id, {"type": "status-update"})

    assert outcome.analysis is None
    assert outcome.changed == []


def test_merge_is_idempotent(template):
    session = make_session(template)
    result = AnalysisResult(overall_score=70, hiring_recommendation="Maybe")

    assert set(merge(session, result)) == {"overall_score", "hiring_recommendation"}
    assert merge(session, result) == []


# --- Pipeline ---


@pytest.mark.asyncio
async def test_ingest_stores_analysis_and_transcript(repo, template):
    session = repo.add_session(make_session(template, status="completed"))
    payload = {
        "message": {
            "type": "end-of-call-report",
            "analysis": {
                "successEvaluation": {"score": 88, "successful": True},
                "structuredData": {"strengths": ["Ownership"]},
            },
            "artifact": {"transcript": LONG_TRANSCRIPT, "recordingUrl": "https://rec/2.wav"},
        }
    }

    outcome = await AnalysisPipeline(repo).ingest(session.id, payload)

    assert outcome.analysis.overall_score == 88
    assert session.overall_score == 88
    assert session.hiring_recommendation == "Yes"
    assert session.strengths == ["Ownership"]
    assert session.final_transcript == LONG_TRANSCRIPT
    assert session.recording_url == "https://rec/2.wav"
    assert "final_transcript" in outcome.changed


@pytest.mark.asyncio
async def test_partial_callback_does_not_clobber_complete_one(repo, template):
    session = repo.add_session(make_session(template, status="completed"))
    pipeline = AnalysisPipeline(repo)

    await pipeline.ingest(session.id, {"structuredData": {"overallScore": 91, "strengths": ["Depth"]}})
    await pipeline.ingest(session.id, {"artifact": {"type": "summary", "summary": "Short call"}})

    assert session.overall_score == 91
    assert session.strengths == ["Depth"]
    assert session.provider_summary == "Short call"


@pytest.mark.asyncio
async def test_ingest_without_anything_to_apply_writes_nothing(repo, template):
    session = repo.add_session(make_session(template))

    outcome = await AnalysisPipeline(repo).ingest(session.id, {"message": {"type": "hang"}})

    assert outcome.analysis is None
    assert outcome.changed == []
    assert repo.mutations == 0


@pytest.mark.asyncio
async def test_ingest_for_unknown_session(repo):
    with pytest.raises(IngestError):
        await AnalysisPipeline(repo).ingest(uuid.uuid4(), {"summary": "Orphan"})


@pytest.mark.asyncio
async def test_results_are_generated_on_demand_for_completed_session(repo, template):
    session = repo.add_session(
        make_session(template, status="completed", final_transcript=LONG_TRANSCRIPT)
    )
    llm = FakeLanguageModel(f"```json\n{_generated_reply()}\n```")

    result = await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert result.overall_score == 78
    assert result.hiring_recommendation == "Yes"
    assert result.question_scores[0].response_quality == 82
    assert session.overall_score == 78
    assert session.category_scores == {"communication": 80, "technical": 75}
    assert LONG_TRANSCRIPT in llm.prompts[0]


@pytest.mark.asyncio
async def test_generation_uses_live_messages_when_no_final_transcript(repo, template):
    session = repo.add_session(
        make_session(
            template,
            status="completed",
            real_time_messages=[
                {"role": "assistant", "content": "Tell me about yourself."},
                {"role": "user", "content": "I have spent six years building payment APIs."},
            ],
        )
    )
    llm = FakeLanguageModel(_generated_reply())

    await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert "user: I have spent six years building payment APIs." in llm.prompts[0]
    assert session.overall_score == 78


@pytest.mark.asyncio
async def test_short_transcript_is_not_analysed(repo, template):
    session = repo.add_session(make_session(template, status="completed", final_transcript="AI: Hi"))
    llm = FakeLanguageModel(_generated_reply())

    result = await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert result.is_empty()
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_existing_analysis_is_returned_without_generation(repo, template):
    session = repo.add_session(
        make_session(
            template, status="completed", overall_score=66.0, final_transcript=LONG_TRANSCRIPT
        )
    )
    llm = FakeLanguageModel(_generated_reply())

    result = await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert result.overall_score == 66.0
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_no_generation_for_sessions_still_in_progress(repo, template):
    session = repo.add_session(
        make_session(template, status="in_progress", final_transcript=LONG_TRANSCRIPT)
    )
    llm = FakeLanguageModel(_generated_reply())

    await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert llm.prompts == []


@pytest.mark.asyncio
async def test_unparseable_generation_leaves_session_untouched(repo, template):
    session = repo.add_session(
        make_session(template, status="completed", final_transcript=LONG_TRANSCRIPT)
    )
    llm = FakeLanguageModel("I cannot evaluate this interview.")

    result = await AnalysisPipeline(repo, AnalysisGenerator(llm)).get_session_results(session.id)

    assert result.overall_score is None
    assert repo.mutations == 0


@pytest.mark.asyncio
async def test_results_for_unknown_session(repo):
    with pytest.raises(SessionNotFoundError):
        await AnalysisPipeline(repo).get_session_results(uuid.uuid4())
