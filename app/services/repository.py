"""Session store used by the orchestration and ingestion services.

Every mutation goes through ``mutate_session``: the row is re-read under a
row lock, the mutator is applied, and the transaction commits, so a live
turn and a late analysis callback never overwrite each other's changes.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Protocol, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import SessionNotFoundError
from app.models.interviewer import Interviewer
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate

logger = structlog.get_logger()

T = TypeVar("T")


class SessionRepository(Protocol):
    async def get_template(self, template_id: uuid.UUID) -> InterviewTemplate | None: ...

    async def get_session(self, session_id: uuid.UUID) -> InterviewSession | None: ...

    async def find_session_by_call_id(self, call_id: str) -> InterviewSession | None: ...

    async def create_session(self, session: InterviewSession) -> InterviewSession: ...

    async def mutate_session(
        self, session_id: uuid.UUID, mutator: Callable[[InterviewSession], T]
    ) -> T: ...

    async def get_default_interviewer_id(self) -> uuid.UUID | None: ...

    async def get_default_template_id(self) -> uuid.UUID | None: ...


@dataclass(frozen=True)
class SessionDefaults:
    interviewer_id: uuid.UUID | None = None
    template_id: uuid.UUID | None = None


async def resolve_session_defaults(repo: SessionRepository) -> SessionDefaults:
    defaults = SessionDefaults(
        interviewer_id=await repo.get_default_interviewer_id(),
        template_id=await repo.get_default_template_id(),
    )
    if defaults.interviewer_id is None or defaults.template_id is None:
        logger.warning(
            "session_defaults_incomplete",
            interviewer_id=str(defaults.interviewer_id) if defaults.interviewer_id else None,
            template_id=str(defaults.template_id) if defaults.template_id else None,
        )
    return defaults


class SqlSessionRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_template(self, template_id: uuid.UUID) -> InterviewTemplate | None:
        async with self.session_factory() as db:
            return await db.get(InterviewTemplate, template_id)

    async def get_session(self, session_id: uuid.UUID) -> InterviewSession | None:
        async with self.session_factory() as db:
            return await db.get(InterviewSession, session_id)

    async def find_session_by_call_id(self, call_id: str) -> InterviewSession | None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(InterviewSession).where(InterviewSession.provider_call_id == call_id)
            )
            return result.scalars().first()

    async def create_session(self, session: InterviewSession) -> InterviewSession:
        async with self.session_factory() as db:
            async with db.begin():
                db.add(session)
            await db.refresh(session)
            return session

    async def mutate_session(
        self, session_id: uuid.UUID, mutator: Callable[[InterviewSession], T]
    ) -> T:
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    select(InterviewSession)
                    .where(InterviewSession.id == session_id)
                    .with_for_update()
                )
                session = result.scalar_one_or_none()
                if session is None:
                    raise SessionNotFoundError(
                        "Session not found", {"session_id": str(session_id)}
                    )
                outcome = mutator(session)
            return outcome

    async def get_default_interviewer_id(self) -> uuid.UUID | None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Interviewer.id).order_by(Interviewer.created_at).limit(1)
            )
            return result.scalar_one_or_none()

    async def get_default_template_id(self) -> uuid.UUID | None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(InterviewTemplate.id).order_by(InterviewTemplate.created_at).limit(1)
            )
            return result.scalar_one_or_none()
