from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def worker_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for Celery tasks.

    Each task runs its own event loop, so pooled connections from the API
    engine cannot be shared; NullPool opens one connection per session.
    """
    worker_engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    return async_sessionmaker(worker_engine, class_=AsyncSession, expire_on_commit=False)
