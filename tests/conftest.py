"""
Pytest fixtures for the taxcore test suite.

Provides:
- A temporary SQLite database per test (async engine for service tests,
  sync engine for seeding and inspecting API tests)
- A fixed clock at 2025-06-15 12:00 Europe/Amsterdam
- Settings and a FastAPI TestClient wired to both
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from taxcore.config import Settings
from taxcore.domain.clock import FixedClock
from taxcore.infrastructure.database import Account, Base, Database
from taxcore.main import create_app

WEBHOOK_SECRET = "test-webhook-secret"
AMSTERDAM = ZoneInfo("Europe/Amsterdam")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 6, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "taxcore-test.db"


@pytest.fixture
def settings(db_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        webhook_secret=WEBHOOK_SECRET,
        dependency_timeout_seconds=5,
    )


# -----------------------------------------------------------------------------
# Async database (service tests)
# -----------------------------------------------------------------------------

@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


async def add_account(session, email: str) -> str:
    account = Account(email=email)
    session.add(account)
    await session.commit()
    return account.id


@pytest.fixture
async def owner_id(session) -> str:
    return await add_account(session, "owner@example.nl")


# -----------------------------------------------------------------------------
# HTTP (API tests)
# -----------------------------------------------------------------------------

@pytest.fixture
def sync_engine(db_path):
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def account_id(sync_engine) -> str:
    with Session(sync_engine) as s:
        account = Account(email="owner@example.nl")
        s.add(account)
        s.commit()
        return account.id


@pytest.fixture
def client(settings, clock, sync_engine):
    app = create_app(settings=settings, clock=clock)
    with TestClient(app) as c:
        yield c
