"""Async database session and engine."""
import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)

# Mask credentials in logs (show only host/db part)
_db_display = settings.DATABASE_URL.split("@")[-1].split("?")[0] if "@" in settings.DATABASE_URL else "configured"
logger.info("Database URL: ...@%s", _db_display)


def build_engine(url: str, **kwargs):
    options = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if url.startswith("postgresql") and "poolclass" not in kwargs:
        options.update(pool_size=10, max_overflow=20, connect_args={"timeout": 10})
    options.update(kwargs)
    return create_async_engine(url, **options)


engine = build_engine(settings.DATABASE_URL)


class Base(DeclarativeBase):
    pass


def build_session_maker(bind) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
