import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class InterviewSession(Base):
    __tablename__ = "interview_sessions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("interview_templates.id")
    )
    interviewer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("interviewers.id"), nullable=True
    )
    candidate_name: Mapped[str] = mapped_column(String(255), default="")
    candidate_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str] = mapped_column(String(255), default="")

    status: Mapped[str] = mapped_column(String(50), default="scheduled", index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_question_index: Mapped[int] = mapped_column(Integer, default=0)
    asked_questions: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    provider_call_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    provider_assistant_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    provider_cost_breakdown: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    real_time_messages: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    final_transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Analysis
    overall_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    analysis_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_scores: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    strengths: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    areas_for_improvement: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    hiring_recommendation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    key_insights: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    question_scores: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    interview_metrics: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    provider_summary: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    provider_success_evaluation: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    provider_structured_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    template = relationship("InterviewTemplate", back_populates="sessions")
    interviewer = relationship("Interviewer", back_populates="sessions")
