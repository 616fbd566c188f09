"""Generate an interview analysis from the transcript when Vapi never delivered one."""

import structlog

from app.core.errors import GenerationError
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate
from app.schemas.interview import AnalysisResult
from app.services.analysis_ingestion import as_text_list, to_score
from app.services.llm import LanguageModel, extract_json
from app.services.questions import question_texts

logger = structlog.get_logger()

MAX_TRANSCRIPT_CHARS = 30000


def build_analysis_prompt(
    session: InterviewSession, template: InterviewTemplate | None, transcript: str
) -> str:
    questions = question_texts(template.questions) if template else []
    questions_text = "\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions)) or "None provided"
    tags = ", ".join(template.tags) if template and template.tags else "None specified"

    return f"""You are an expert HR analyst and senior technical recruiter evaluating a candidate's interview performance.

INTERVIEW CONTEXT:
- Candidate Name: {session.candidate_name}
- Position Applied For: {session.position}
- Interview Template: {template.title if template else 'Unknown'}
- Template Description: {(template.description if template else None) or 'Not provided'}
- Interview Category: {(template.category if template else None) or 'General'}
- Difficulty Level: {(template.difficulty if template else None) or 'Intermediate'}
- Template Tags: {tags}
- Interview Duration: {session.duration_minutes or 'Unknown'} minutes

INTERVIEW TEMPLATE QUESTIONS:
{questions_text}

EVALUATION CRITERIA:
1. Communication Skills: clarity, articulation, ability to explain complex concepts
2. Technical Knowledge: depth of knowledge relevant to the position
3. Problem-Solving Abilities: logical thinking, approach to challenges
4. Cultural Fit: professional values, collaboration potential
5. Experience Relevance: how well their background matches the role
6. Question Response Quality: completeness, relevance and insight of answers

FULL INTERVIEW TRANSCRIPT:
{transcript[:MAX_TRANSCRIPT_CHARS]}

Respond with ONLY a valid JSON object in exactly this format:
{{
  "analysis_score": 85.5,
  "analysis_feedback": "3-4 sentences explaining the overall assessment",
  "strengths": ["strength with a concrete example from the transcript"],
  "areas_for_improvement": ["area with a suggestion for improvement"],
  "category_scores": {{"Communication": 88, "Technical Knowledge": 82, "Problem Solving": 90, "Cultural Fit": 85}},
  "hiring_recommendation": "Strong Hire | Hire | Maybe | No Hire",
  "key_insights": ["insight about the candidate's potential and fit"],
  "question_scores": [{{"question": "...", "responseQuality": 80, "feedback": "...", "keyPoints": ["..."]}}],
  "interview_metrics": {{"communication_clarity": 87, "technical_depth": 83, "engagement_level": 92, "completeness": 78}}
}}

Base every score only on evidence in the transcript. Scores are 0-100."""


def result_from_generated(data: dict) -> AnalysisResult:
    categories = {}
    raw_categories = data.get("category_scores")
    for name, value in (raw_categories.items() if isinstance(raw_categories, dict) else []):
        score = to_score(value)
        if score is not None:
            categories[name] = score

    question_scores = []
    for item in data.get("question_scores") or []:
        if isinstance(item, dict) and isinstance(item.get("question"), str):
            question_scores.append(
                {
                    "question": item["question"],
                    "response_quality": to_score(item.get("responseQuality")),
                    "feedback": item.get("feedback") if isinstance(item.get("feedback"), str) else None,
                    "key_points": as_text_list(item.get("keyPoints")),
                }
            )

    recommendation = data.get("hiring_recommendation")
    feedback = data.get("analysis_feedback")
    metrics = data.get("interview_metrics")
    return AnalysisResult(
        overall_score=to_score(data.get("analysis_score")),
        category_scores=categories,
        strengths=as_text_list(data.get("strengths")),
        areas_for_improvement=as_text_list(data.get("areas_for_improvement")),
        hiring_recommendation=str(recommendation) if recommendation else None,
        key_insights=as_text_list(data.get("key_insights")),
        question_scores=question_scores,
        feedback=feedback if isinstance(feedback, str) else None,
        interview_metrics=metrics if isinstance(metrics, dict) else {},
    )


class AnalysisGenerator:
    def __init__(self, llm: LanguageModel, timeout: float = 60.0):
        self.llm = llm
        self.timeout = timeout

    async def generate(
        self, session: InterviewSession, template: InterviewTemplate | None, transcript: str
    ) -> AnalysisResult | None:
        logger.info("analysis_generation_start", session_id=str(session.id), chars=len(transcript))
        try:
            text = await self.llm.complete(
                build_analysis_prompt(session, template, transcript),
                max_tokens=4000,
                temperature=0.3,
                timeout=self.timeout,
            )
            data = extract_json(text)
        except GenerationError as e:
            logger.warning("analysis_generation_failed", session_id=str(session.id), error=e.message)
            return None

        if not isinstance(data, dict):
            logger.warning("analysis_generation_unexpected_shape", session_id=str(session.id))
            return None
        return result_from_generated(data)
