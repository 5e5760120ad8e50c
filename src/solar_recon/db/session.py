from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_recon.db.engine import dispose_engine, get_engine

_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine.

    ``expire_on_commit=False`` so match rows stay readable after the
    per-chunk transactions that wrote them have committed.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def close_sessions() -> None:
    """Drop the cached factory and dispose the engine behind it."""
    global _session_factory
    _session_factory = None
    await dispose_engine()


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a read session. Writers open their own transactions."""
    async with get_session_factory()() as session:
        yield session
