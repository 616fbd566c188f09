import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class QuestionScore(BaseModel):
    question: str
    response_quality: float | None = None
    feedback: str | None = None
    key_points: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Normalized post-call analysis. ``None`` / empty means "not supplied"."""

    overall_score: float | None = None
    category_scores: dict[str, float] = Field(default_factory=dict)
    strengths: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    hiring_recommendation: str | None = None
    key_insights: list[str] = Field(default_factory=list)
    question_scores: list[QuestionScore] = Field(default_factory=list)
    feedback: str | None = None
    interview_metrics: dict[str, Any] = Field(default_factory=dict)
    summary: Any = None
    success_evaluation: Any = None
    structured_data: Any = None

    def is_empty(self) -> bool:
        return not any(
            (
                self.overall_score is not None,
                self.category_scores,
                self.strengths,
                self.areas_for_improvement,
                self.hiring_recommendation,
                self.key_insights,
                self.question_scores,
                self.feedback,
            )
        )


class SessionCreate(BaseModel):
    template_id: uuid.UUID | None = None
    interviewer_id: uuid.UUID | None = None
    candidate_name: str = ""
    candidate_email: str | None = None
    position: str = ""


class SessionResponse(BaseModel):
    id: uuid.UUID
    template_id: uuid.UUID
    interviewer_id: uuid.UUID | None
    candidate_name: str
    position: str
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    duration_minutes: int | None
    duration_seconds: int | None
    current_question_index: int
    provider_call_id: str | None
    provider_cost: float | None
    overall_score: float | None

    model_config = {"from_attributes": True}


class StartSessionRequest(BaseModel):
    candidate_name: str
    position: str


class TransitionResponse(BaseModel):
    session_id: uuid.UUID
    status: str
    changed: bool
