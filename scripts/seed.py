"""Seed the database with a demo interviewer, templates and sessions."""

import os
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.interviewer import Interviewer
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate

settings = get_settings()
sync_url = settings.DATABASE_URL.replace("+asyncpg", "")
engine = create_engine(sync_url)

NOW = datetime.now(timezone.utc)


def seed():
    with Session(engine) as session:
        existing = session.execute(select(Interviewer).limit(1)).scalar_one_or_none()
        if existing:
            print("DB already has data. Use --force to reset.")
            if "--force" not in sys.argv:
                return
            for tbl in [InterviewSession, InterviewTemplate, Interviewer]:
                session.execute(tbl.__table__.delete())
            session.commit()
            print("Cleaned existing data.")

        interviewer = Interviewer(
            full_name="Demo Interviewer",
            email="interviewer@aivi.dev",
            role="admin",
            created_at=NOW - timedelta(days=30),
        )
        session.add(interviewer)
        session.flush()

        # One template per stored question shape
        templates = [
            InterviewTemplate(
                title="Backend Engineer Screen",
                description="Python services, APIs and data modelling.",
                category="technical",
                difficulty="Intermediate",
                duration=30,
                instruction="Be friendly but probe for concrete examples.",
                questions=[
                    {"title": "Tell me about yourself", "type": "open", "points": 5},
                    {"title": "Describe an API you designed end to end", "type": "open", "points": 10},
                    {"title": "How do you approach database migrations?", "points": 10},
                ],
                tags=["python", "backend", "api"],
                created_at=NOW - timedelta(days=29),
            ),
            InterviewTemplate(
                title="Customer Success Behavioural",
                description="Communication and ownership.",
                category="behavioral",
                difficulty="Beginner",
                duration=15,
                questions=[
                    "Tell me about a difficult customer conversation.",
                    "How do you prioritise competing requests?",
                    "What does great support look like to you?",
                ],
                tags=["support"],
                created_at=NOW - timedelta(days=20),
            ),
            InterviewTemplate(
                title="Quick Intro Call",
                description="Two-minute smoke test template.",
                category="general",
                duration=2,
                questions={
                    "questions": [
                        {"text": "What interests you about this role?", "category": "motivation"},
                        {"text": "When could you start?", "category": "logistics", "weight": 1},
                    ]
                },
                created_at=NOW - timedelta(days=10),
            ),
        ]
        session.add_all(templates)
        session.flush()

        print("=== Templates ===")
        for t in templates:
            print(f"  {t.id}  {t.title} ({t.duration} min)")

        sessions = [
            InterviewSession(
                template_id=templates[0].id,
                interviewer_id=interviewer.id,
                candidate_name="Alex Martin",
                candidate_email="alex@example.com",
                position="Backend Engineer",
                status="scheduled",
                current_question_index=0,
                asked_questions=[],
                real_time_messages=[],
            ),
            InterviewSession(
                template_id=templates[1].id,
                interviewer_id=interviewer.id,
                candidate_name="Sam Lee",
                candidate_email="sam@example.com",
                position="Customer Success Manager",
                status="completed",
                started_at=NOW - timedelta(days=2, minutes=15),
                completed_at=NOW - timedelta(days=2),
                duration_minutes=15,
                duration_seconds=900,
                current_question_index=3,
                asked_questions=[
                    "Tell me about a difficult customer conversation.",
                    "How do you prioritise competing requests?",
                    "What does great support look like to you?",
                ],
                real_time_messages=[],
                final_transcript=(
                    "AI: Tell me about a difficult customer conversation.\n"
                    "User: A customer lost a week of data after a failed import. I walked them "
                    "through recovery from backups and set up a weekly check-in until they "
                    "were confident again."
                ),
            ),
        ]
        session.add_all(sessions)
        session.commit()

        print("=== Sessions ===")
        for s in sessions:
            print(f"  {s.id}  {s.candidate_name} [{s.status}]")


if __name__ == "__main__":
    seed()
