"""interviewers, interview templates and interview sessions

Revision ID: d1e2f3a4b5c6
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "d1e2f3a4b5c6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "interviewers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="interviewer"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "interview_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("difficulty", sa.String(50), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("instruction", sa.Text(), nullable=True),
        sa.Column("questions", postgresql.JSONB(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "interview_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "template_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("interview_templates.id"),
            nullable=False,
        ),
        sa.Column(
            "interviewer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("interviewers.id"),
            nullable=True,
        ),
        sa.Column("candidate_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("candidate_email", sa.String(255), nullable=True),
        sa.Column("position", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(50), nullable=False, server_default="scheduled"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("current_question_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("asked_questions", postgresql.JSONB(), nullable=True),
        sa.Column("provider_call_id", sa.String(255), nullable=True),
        sa.Column("provider_assistant_id", sa.String(255), nullable=True),
        sa.Column("provider_cost", sa.Float(), nullable=True),
        sa.Column("provider_cost_breakdown", postgresql.JSONB(), nullable=True),
        sa.Column("real_time_messages", postgresql.JSONB(), nullable=True),
        sa.Column("final_transcript", sa.Text(), nullable=True),
        sa.Column("recording_url", sa.String(1000), nullable=True),
        sa.Column("overall_score", sa.Float(), nullable=True),
        sa.Column("analysis_feedback", sa.Text(), nullable=True),
        sa.Column("category_scores", postgresql.JSONB(), nullable=True),
        sa.Column("strengths", postgresql.JSONB(), nullable=True),
        sa.Column("areas_for_improvement", postgresql.JSONB(), nullable=True),
        sa.Column("hiring_recommendation", sa.String(50), nullable=True),
        sa.Column("key_insights", postgresql.JSONB(), nullable=True),
        sa.Column("question_scores", postgresql.JSONB(), nullable=True),
        sa.Column("interview_metrics", postgresql.JSONB(), nullable=True),
        sa.Column("provider_summary", postgresql.JSONB(), nullable=True),
        sa.Column("provider_success_evaluation", postgresql.JSONB(), nullable=True),
        sa.Column("provider_structured_data", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_interview_sessions_status", "interview_sessions", ["status"])
    op.create_index("ix_interview_sessions_provider_call_id", "interview_sessions", ["provider_call_id"])


def downgrade() -> None:
    op.drop_index("ix_interview_sessions_provider_call_id", table_name="interview_sessions")
    op.drop_index("ix_interview_sessions_status", table_name="interview_sessions")
    op.drop_table("interview_sessions")
    op.drop_table("interview_templates")
    op.drop_table("interviewers")
