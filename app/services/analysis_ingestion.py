"""Ingest post-call analysis from Vapi callbacks into the session record.

Vapi has delivered analysis under several envelopes over time. ``extract``
tries each known envelope in priority order (``SHAPE_MATCHERS``) and is the
only code that looks at raw payload shapes; everything after it works on
``AnalysisResult``.

Merging is field by field and never replaces a stored value with an empty
one, so a late or partial callback cannot clobber a complete one.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import structlog

from app.core.errors import IngestError, SessionNotFoundError
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate
from app.schemas.interview import AnalysisResult, QuestionScore
from app.services.repository import SessionRepository
from app.services.session_lifecycle import SessionStatus

logger = structlog.get_logger()

CATEGORY_KEYS = ("communication", "technical", "experience", "culturalFit")
CATEGORY_ALIASES = {"fit": "culturalFit"}


@dataclass(frozen=True)
class RawAnalysis:
    source: str
    summary: Any = None
    success_evaluation: Any = None
    structured_data: Any = None

    def is_empty(self) -> bool:
        return all(
            _is_empty(value)
            for value in (self.summary, self.success_evaluation, self.structured_data)
        )


@dataclass
class IngestOutcome:
    analysis: AnalysisResult | None = None
    changed: list[str] = field(default_factory=list)


class TranscriptAnalyzer(Protocol):
    async def generate(
        self, session: InterviewSession, template: InterviewTemplate | None, transcript: str
    ) -> AnalysisResult | None: ...


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple)):
        return len(value) == 0
    return False


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _maybe_json(value: Any) -> Any:
    """Analysis plans answer with JSON text more often than with JSON."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("{", "["):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return value
    return value


def to_score(value: Any) -> float | None:
    """Parse a 0-100 score; numeric strings are accepted, out-of-range values clamped."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    return float(min(100.0, max(0.0, value)))


def as_text_list(value: Any) -> list[str]:
    if _is_empty(value):
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if not _is_empty(item)]
    return [str(value)]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else json.dumps(value)


def _first(*values: Any) -> Any:
    for value in values:
        if not _is_empty(value):
            return value
    return None


# --- Shape matchers ---


def _from_message_analysis(payload: dict) -> RawAnalysis | None:
    analysis = _dict(_dict(payload.get("message")).get("analysis"))
    if not analysis:
        return None
    return RawAnalysis(
        source="message.analysis",
        summary=analysis.get("summary"),
        success_evaluation=analysis.get("successEvaluation"),
        structured_data=analysis.get("structuredData"),
    )


def _from_call_analysis(payload: dict) -> RawAnalysis | None:
    call = _dict(payload.get("call")) or _dict(_dict(payload.get("message")).get("call"))
    analysis = _dict(call.get("analysis"))
    if not analysis:
        return None
    return RawAnalysis(
        source="call.analysis",
        summary=analysis.get("summary"),
        success_evaluation=analysis.get("successEvaluation"),
        structured_data=analysis.get("structuredData"),
    )


def _from_artifact(payload: dict) -> RawAnalysis | None:
    artifact = _dict(payload.get("artifact"))
    if not artifact:
        return None

    kind = artifact.get("type")
    if kind == "summary":
        return RawAnalysis(source="artifact.summary", summary=artifact.get("summary"))
    if kind == "success-evaluation":
        evaluation = artifact.get("evaluation")
        if _is_empty(evaluation):
            # Older deliveries put score/feedback/successful on the artifact itself
            evaluation = {k: v for k, v in artifact.items() if k != "type"}
        return RawAnalysis(source="artifact.success-evaluation", success_evaluation=evaluation)
    if kind == "structured-data":
        return RawAnalysis(source="artifact.structured-data", structured_data=artifact.get("data"))

    return RawAnalysis(
        source="artifact",
        summary=artifact.get("summary"),
        success_evaluation=artifact.get("evaluation"),
        structured_data=artifact.get("data"),
    )


def _from_flattened(payload: dict) -> RawAnalysis | None:
    return RawAnalysis(
        source="flattened",
        summary=payload.get("summary"),
        success_evaluation=payload.get("successEvaluation"),
        structured_data=payload.get("structuredData"),
    )


SHAPE_MATCHERS: tuple[Callable[[dict], RawAnalysis | None], ...] = (
    _from_message_analysis,
    _from_call_analysis,
    _from_artifact,
    _from_flattened,
)


def extract(payload: Any) -> RawAnalysis | None:
    """First non-empty analysis found in ``payload``; None means the payload carries none."""
    if not isinstance(payload, dict):
        return None
    for matcher in SHAPE_MATCHERS:
        raw = matcher(payload)
        if raw is not None and not raw.is_empty():
            return raw
    return None


def extract_transcript(payload: Any) -> tuple[str | None, str | None]:
    """Final transcript and recording URL from an end-of-call style payload."""
    if not isinstance(payload, dict):
        return None, None

    message = _dict(payload.get("message"))
    message_artifact = _dict(message.get("artifact"))
    artifact = _dict(payload.get("artifact"))
    call = _dict(payload.get("call")) or _dict(message.get("call"))

    sources = (message, message_artifact, artifact, call)
    transcript = _first(*(s.get("transcript") for s in sources))
    recording = _first(*(s.get("recordingUrl") for s in sources))
    if not isinstance(transcript, str):
        transcript = None
    if not isinstance(recording, str):
        recording = None
    return transcript, recording


# --- Normalization ---


def _question_scores(items: Any, ten_point: bool = False) -> list[QuestionScore]:
    """``ten_point`` marks summary-plan items, which score answers 1-10."""
    scores = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        question = _first(item.get("question"), item.get("text"))
        if not isinstance(question, str):
            continue
        quality = to_score(
            _first(item.get("responseQuality"), item.get("response_quality"), item.get("score"))
        )
        if ten_point and quality is not None and quality <= 10:
            quality *= 10
        scores.append(
            QuestionScore(
                question=question,
                response_quality=quality,
                feedback=_text(_first(item.get("feedback"), item.get("evaluation"))),
                key_points=as_text_list(_first(item.get("keyPoints"), item.get("key_points"))),
            )
        )
    return scores


def normalize(raw: RawAnalysis) -> AnalysisResult:
    structured = _dict(_maybe_json(raw.structured_data))
    evaluation = _maybe_json(raw.success_evaluation)
    summary = _maybe_json(raw.summary)

    evaluation_fields = _dict(evaluation)
    evaluation_score = (
        _first(evaluation_fields.get("score"), evaluation_fields.get("overall"))
        if evaluation_fields
        else evaluation
    )
    summary_fields = _dict(summary)

    overall = to_score(_first(structured.get("overallScore"), structured.get("overall")))
    if overall is None:
        overall = to_score(evaluation_score)
    if overall is None and summary_fields.get("averageScore") is not None:
        average = to_score(summary_fields["averageScore"])
        overall = to_score(average * 10) if average is not None else None

    categories: dict[str, float] = {}
    for name, value in _dict(structured.get("categoryScores")).items():
        score = to_score(value)
        if score is not None:
            categories[name] = score
    if not categories:
        for source in (structured, evaluation_fields):
            for key, value in source.items():
                name = CATEGORY_ALIASES.get(key, key)
                if name in CATEGORY_KEYS and name not in categories:
                    score = to_score(value)
                    if score is not None:
                        categories[name] = score

    recommendation = _first(
        structured.get("hiringRecommendation"),
        structured.get("recommendation"),
        evaluation_fields.get("recommendation"),
    )
    if recommendation is None and isinstance(evaluation_fields.get("successful"), bool):
        recommendation = "Yes" if evaluation_fields["successful"] else "No"

    insights = as_text_list(structured.get("keyInsights"))
    if not insights and summary_fields.get("overallFlow"):
        insights = as_text_list(summary_fields["overallFlow"])

    if not _is_empty(structured.get("questionResponses")):
        question_scores = _question_scores(structured["questionResponses"])
    else:
        question_scores = _question_scores(
            _first(summary_fields.get("questions"), summary if isinstance(summary, list) else None),
            ten_point=True,
        )

    return AnalysisResult(
        overall_score=overall,
        category_scores=categories,
        strengths=as_text_list(structured.get("strengths")),
        areas_for_improvement=as_text_list(
            _first(structured.get("areasForImprovement"), structured.get("weaknesses"))
        ),
        hiring_recommendation=str(recommendation) if recommendation is not None else None,
        key_insights=insights,
        question_scores=question_scores,
        feedback=_text(
            _first(
                structured.get("reasoning"),
                structured.get("feedback"),
                evaluation_fields.get("feedback"),
                evaluation_fields.get("reason"),
                evaluation_fields.get("reasoning"),
            )
        ),
        interview_metrics=_dict(structured.get("interviewMetrics")),
        summary=raw.summary,
        success_evaluation=raw.success_evaluation,
        structured_data=raw.structured_data,
    )


# --- Merge ---


def _session_values(result: AnalysisResult) -> dict[str, Any]:
    return {
        "overall_score": result.overall_score,
        "category_scores": result.category_scores,
        "strengths": result.strengths,
        "areas_for_improvement": result.areas_for_improvement,
        "hiring_recommendation": result.hiring_recommendation,
        "key_insights": result.key_insights,
        "question_scores": [q.model_dump() for q in result.question_scores],
        "analysis_feedback": result.feedback,
        "interview_metrics": result.interview_metrics,
        "provider_summary": result.summary,
        "provider_success_evaluation": result.success_evaluation,
        "provider_structured_data": result.structured_data,
    }


def merge(session: InterviewSession, result: AnalysisResult) -> list[str]:
    """Apply every non-empty field of ``result``; returns the names of changed columns."""
    changed = []
    for column, value in _session_values(result).items():
        if _is_empty(value):
            continue
        if getattr(session, column) != value:
            setattr(session, column, value)
            changed.append(column)
    return changed


def has_analysis(session: InterviewSession) -> bool:
    return any(
        not _is_empty(value)
        for value in (
            session.overall_score,
            session.hiring_recommendation,
            session.analysis_feedback,
            session.strengths,
            session.category_scores,
            session.question_scores,
        )
    )


def result_from_session(session: InterviewSession) -> AnalysisResult:
    return AnalysisResult(
        overall_score=session.overall_score,
        category_scores=session.category_scores or {},
        strengths=session.strengths or [],
        areas_for_improvement=session.areas_for_improvement or [],
        hiring_recommendation=session.hiring_recommendation,
        key_insights=session.key_insights or [],
        question_scores=_question_scores(session.question_scores),
        feedback=session.analysis_feedback,
        interview_metrics=session.interview_metrics or {},
        summary=session.provider_summary,
        success_evaluation=session.provider_success_evaluation,
        structured_data=session.provider_structured_data,
    )


def session_transcript(session: InterviewSession) -> str:
    if session.final_transcript:
        return session.final_transcript
    lines = []
    for message in session.real_time_messages or []:
        content = message.get("content") if isinstance(message, dict) else None
        if content:
            lines.append(f"{message.get('role') or 'unknown'}: {content}")
    return "\n".join(lines)


class AnalysisPipeline:
    def __init__(
        self,
        repo: SessionRepository,
        analyzer: TranscriptAnalyzer | None = None,
        min_transcript_chars: int = 50,
    ):
        self.repo = repo
        self.analyzer = analyzer
        self.min_transcript_chars = min_transcript_chars

    async def ingest(self, session_id: uuid.UUID, payload: Any) -> IngestOutcome:
        raw = extract(payload)
        transcript, recording_url = extract_transcript(payload)

        if raw is None:
            logger.info("analysis_not_present", session_id=str(session_id))
        result = normalize(raw) if raw is not None else None

        if result is None and not transcript and not recording_url:
            return IngestOutcome()

        def apply(session: InterviewSession) -> list[str]:
            changed = []
            if transcript and session.final_transcript != transcript:
                session.final_transcript = transcript
                changed.append("final_transcript")
            if recording_url and session.recording_url != recording_url:
                session.recording_url = recording_url
                changed.append("recording_url")
            if result is not None:
                changed.extend(merge(session, result))
            return changed

        try:
            changed = await self.repo.mutate_session(session_id, apply)
        except SessionNotFoundError as e:
            raise IngestError("Cannot ingest analysis for unknown session", e.details) from e

        logger.info(
            "analysis_ingested",
            session_id=str(session_id),
            source=raw.source if raw else None,
            changed=changed,
        )
        return IngestOutcome(analysis=result, changed=changed)

    async def get_session_results(self, session_id: uuid.UUID) -> AnalysisResult:
        session = await self.repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found", {"session_id": str(session_id)})

        if has_analysis(session) or session.status != SessionStatus.COMPLETED.value:
            return result_from_session(session)

        regenerated = await self.regenerate(session)
        return regenerated or result_from_session(session)

    async def regenerate(self, session: InterviewSession) -> AnalysisResult | None:
        """Analyse the stored transcript and merge the result; None when nothing could be generated."""
        generated = await self.generate_from_transcript(session)
        if generated is None:
            return None

        def apply(current: InterviewSession) -> AnalysisResult:
            changed = merge(current, generated)
            logger.info("analysis_generated_merged", session_id=str(current.id), changed=changed)
            return result_from_session(current)

        return await self.repo.mutate_session(session.id, apply)

    async def generate_from_transcript(self, session: InterviewSession) -> AnalysisResult | None:
        transcript = session_transcript(session)
        if self.analyzer is None:
            return None
        if len(transcript.strip()) < self.min_transcript_chars:
            logger.info(
                "analysis_skip_short_transcript",
                session_id=str(session.id),
                chars=len(transcript.strip()),
            )
            return None

        template = await self.repo.get_template(session.template_id)
        result = await self.analyzer.generate(session, template, transcript)
        if result is None or result.is_empty():
            return None
        logger.info("analysis_generated", session_id=str(session.id))
        return result
