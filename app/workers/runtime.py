"""Run async service functions from synchronous Celery tasks."""
import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.db.session import build_engine, build_session_maker

T = TypeVar("T")


def run_with_session(fn: Callable[..., Awaitable[T]], *args: Any) -> T:
    """Call ``fn(session, *args)`` in a fresh event loop and commit on success.

    Each call gets its own engine without pooling: connections cannot be
    shared across the event loops that successive ``asyncio.run`` calls create.
    """

    async def _run() -> T:
        engine = build_engine(settings.DATABASE_URL, poolclass=NullPool)
        session_maker = build_session_maker(engine)
        try:
            async with session_maker() as session:
                session: AsyncSession
                try:
                    result = await fn(session, *args)
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
                return result
        finally:
            await engine.dispose()

    return asyncio.run(_run())
