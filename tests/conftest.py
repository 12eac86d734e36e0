"""
conftest.py — Shared Test Fixtures for property enrichment

Provides an in-memory SQLite database, configured Settings, a FastAPI
TestClient with dependency overrides, and factory fixtures for properties.

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- No test touches the network: collaborators are AsyncMocks or run over
  httpx.MockTransport
- Each test function gets a fresh DB (tables dropped after)

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db), app.dependencies
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing app modules

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.models import Base, Property

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def settings() -> Settings:
    """Fully configured settings, isolated from any local .env."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        browserless_token="bl-test",
        serp_api_key="serp-test",
    )


@pytest.fixture()
def unconfigured_settings() -> Settings:
    return Settings(_env_file=None, openai_api_key="", browserless_token="", serp_api_key="")


@pytest.fixture()
def mock_log() -> MagicMock:
    return MagicMock()


def make_property(db: Session, **kw) -> Property:
    """Insert a property with sensible defaults."""
    defaults = {
        "street_address": "123 Oak Ridge Dr",
        "city": "San Antonio",
        "state": "TX",
        "enrichment_status": "pending",
    }
    defaults.update(kw)
    prop = Property(**defaults)
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


@pytest.fixture()
def pending_property(db_session: Session) -> Property:
    """A freshly imported property: address only."""
    return make_property(db_session)


@pytest.fixture()
def client(db_session: Session, settings: Settings) -> TestClient:
    """FastAPI TestClient with DB and settings overridden.

    Pipeline components are overridden per test through
    app.dependency_overrides.
    """
    from app.database import get_db
    from app.dependencies import get_app_settings
    from app.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_app_settings] = lambda: settings

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture()
def fake_orchestrator() -> MagicMock:
    orch = MagicMock()
    orch.enrich = AsyncMock()
    orch.deep_search = AsyncMock()
    return orch


@pytest.fixture()
def fake_unit_discovery() -> MagicMock:
    disc = MagicMock()
    disc.discover = AsyncMock()
    return disc


@pytest.fixture()
def property_factory(db_session: Session):
    """Call with column overrides to insert a property."""
    return lambda **kw: make_property(db_session, **kw)
