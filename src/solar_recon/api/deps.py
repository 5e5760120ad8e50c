"""FastAPI dependency injection for DB sessions, policy and operator auth."""

from __future__ import annotations

import datetime as dt
from collections.abc import AsyncGenerator

import sqlalchemy as sa
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_recon.config.settings import get_settings
from solar_recon.db.session import get_session_factory
from solar_recon.matching.config import ReconciliationConfig, load_reconciliation_config
from solar_recon.models.admin_session import AdminSession


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session for request handling."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Session factory for handlers that manage their own transactions."""
    return get_session_factory()


def get_reconciliation_config() -> ReconciliationConfig:
    """Reconciliation policy, re-read per request so edits apply without restart."""
    return load_reconciliation_config(get_settings().reconciliation_config_path)


async def require_operator(
    x_admin_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Validate the operator's admin session token.

    Tokens are issued by the admin login flow; this only checks that the
    token exists and has not expired.
    """
    if not x_admin_token:
        raise HTTPException(status_code=401, detail="Admin token required")

    stmt = sa.select(AdminSession.expires_at).where(AdminSession.token == x_admin_token)
    expires_at = (await db.execute(stmt)).scalar_one_or_none()

    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    if expires_at is None or expires_at <= now:
        raise HTTPException(status_code=401, detail="Invalid or expired admin token")
    return x_admin_token
