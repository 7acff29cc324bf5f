"""Pytest fixtures — a fresh SQLite database per test."""
import os
from datetime import datetime, timezone

# The app module builds its engine at import time; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from dormlink.config import settings
from dormlink.database import Base, get_db
from dormlink.main import app
from dormlink.schemas.actor import Actor, Role
from dormlink.schemas.outing import Guardian, Schedule
from dormlink.services import outing_service
from dormlink.services.outing_feed import feed

# Import all models so they register with Base.metadata
from dormlink.models.outing_request import OutingRequest          # noqa: F401
from dormlink.models.outing_transition import OutingTransition    # noqa: F401

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

STUDENT = Actor(id="student-1", display_name="Asha Verma", role=Role.student)
OTHER_STUDENT = Actor(id="student-2", display_name="Ravi Nair", role=Role.student)
FACULTY = Actor(id="faculty-1", display_name="Dr. Menon", role=Role.faculty)
GATE = Actor(id="gate-1", display_name="North Gate", role=Role.gate)

MOTHER = Guardian(name="Meera Verma", relation="Mother", phone="+91-9800000001", email="meera@example.com")
UNCLE = Guardian(name="Karan Verma", relation="Local Guardian", phone="+91-9800000002")

SCHEDULE = Schedule(
    departure_date="2026-03-06",
    departure_time="17:00",
    arrival_date="2026-03-08",
    arrival_time="20:00",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """No LLM calls in tests, and no feed subscribers leaking between tests."""
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "https://dormlink.test")
    feed.clear()
    yield
    feed.clear()


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh file-backed SQLite engine for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def headers_for(actor: Actor) -> dict:
    """Identity headers as forwarded by the auth proxy."""
    return {
        "X-Actor-Id": actor.id,
        "X-Actor-Name": actor.display_name,
        "X-Actor-Role": actor.role.value,
    }


def create_test_outing(db, actor: Actor = STUDENT, now: datetime = T0, reason: str = "Cousin's wedding in Pune.") -> OutingRequest:
    """Helper — create an outing through the orchestrator with MOTHER selected."""
    return outing_service.create_request(
        db,
        actor=actor,
        schedule=SCHEDULE,
        reason=reason,
        guardians=[MOTHER, UNCLE],
        selected_guardian=MOTHER,
        now=now,
    )


def outing_payload(selected: Guardian = MOTHER, **overrides) -> dict:
    """Helper — JSON body for POST /api/outings/."""
    body = {
        "schedule": SCHEDULE.model_dump(),
        "reason": "Cousin's wedding in Pune.",
        "guardians": [MOTHER.model_dump(), UNCLE.model_dump()],
        "selected_guardian": selected.model_dump(),
    }
    body.update(overrides)
    return body
