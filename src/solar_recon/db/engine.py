from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from solar_recon.config.settings import get_settings

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, creating it on first use.

    Statement echo follows ``SOLAR_RECON_LOG_LEVEL=DEBUG``.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.log_level.upper() == "DEBUG",
            pool_pre_ping=True,
        )
    return _engine


async def dispose_engine() -> None:
    """Close pooled connections; the next ``get_engine`` call starts fresh."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
