"""Shared test fixtures."""

import datetime as dt

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from solar_recon.api.app import app
from solar_recon.api.deps import get_db, get_reconciliation_config, get_sessionmaker
from solar_recon.matching.config import ReconciliationConfig
from solar_recon.models.admin_session import AdminSession
from solar_recon.models.base import Base
from solar_recon.models.installation import Installation
from solar_recon.models.interconnection import Interconnection

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def reconciliation_config() -> ReconciliationConfig:
    """Default reconciliation policy."""
    return ReconciliationConfig()


@pytest.fixture
async def test_engine():
    """Create an async SQLite in-memory engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
async def broken_session_factory():
    """Session factory for a database with no tables, so every read fails."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def api_client(test_engine, test_session_factory, reconciliation_config):
    """Async HTTP client hitting the FastAPI app with test DB."""

    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sessionmaker] = lambda: test_session_factory
    app.dependency_overrides[get_reconciliation_config] = lambda: reconciliation_config
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def admin_token(test_session_factory) -> str:
    """Insert a live operator session and return its token."""
    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    async with test_session_factory() as session, session.begin():
        session.add(AdminSession(token=ADMIN_TOKEN, expires_at=now + dt.timedelta(hours=8)))
    return ADMIN_TOKEN


@pytest.fixture
async def seeded_db(test_session_factory):
    """Seed the test DB with permits and interconnection requests.

    - ``permit-1`` / ``pir-1``: same kW, 4 days apart, same installer
      (exact_kw_date, confirmed).
    - ``permit-2`` / ``pir-2``: same installer and fiscal year, no permit
      capacity, 75 days apart (installer_fiscal_year at exactly 55).
    - ``permit-3``: capacity only, nothing else to match on (skipped).
    - ``pir-3``: nothing points at it (stays unmatched).
    """
    async with test_session_factory() as session, session.begin():
        session.add_all(
            [
                Installation(
                    id="permit-1",
                    project_id="2024-012345 EP",
                    address="1200 E 6TH ST",
                    installed_kw=10.0,
                    issued_date=dt.date(2024, 1, 20),
                    completed_date=dt.date(2024, 3, 1),
                    contractor_company="Acme Solar LLC",
                ),
                Installation(
                    id="permit-2",
                    project_id="2023-000777 EP",
                    address="48 RAINEY ST",
                    installed_kw=None,
                    completed_date=dt.date(2023, 1, 15),
                    contractor_company="Sunrise Power Co",
                ),
                Installation(
                    id="permit-3",
                    project_id="2022-004400 EP",
                    address="9 CONGRESS AVE",
                    installed_kw=8.2,
                ),
            ]
        )
        session.add_all(
            [
                Interconnection(
                    id="pir-1",
                    pir_number="PIR-0001",
                    address="ACME SOLAR - 2024-03-05 - 10kW",
                    system_kw=10.0,
                    interconnection_date=dt.date(2024, 3, 5),
                    raw_data={"installer": "ACME SOLAR", "battery_kwh": 13.5},
                ),
                Interconnection(
                    id="pir-2",
                    pir_number="PIR-0002",
                    system_kw=7.0,
                    interconnection_date=dt.date(2023, 3, 31),
                    raw_data={"installer": "SUNRISE POWER", "fiscal_year": "FY2023"},
                ),
                Interconnection(
                    id="pir-3",
                    pir_number="PIR-0003",
                    system_kw=25.0,
                    interconnection_date=dt.date(2021, 6, 1),
                    raw_data={"installer": "Somebody Else Inc"},
                ),
            ]
        )
