# conftest.py — shared fixtures: event factory, fixed "now", throwaway DB, API client

import os
from datetime import datetime

import pytest
import pytz

os.environ.setdefault("TZ_DEFAULT", "UTC")
os.environ.setdefault("AUTO_CREATE_DB", "false")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from timeclock.db import Base, get_db
from timeclock.main import app
from timeclock.models import models  # noqa: F401  (registers tables on Base)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=pytz.UTC)


# --- Clock entries -----------------------------------------------------------
@pytest.fixture
def make_event():
    """Build a raw clock entry dict the way the clients store them."""
    counter = {"n": 0}

    def _make(action, when, user_id="u1", **extra):
        counter["n"] += 1
        record = {
            "id": extra.pop("id", f"e{counter['n']}"),
            "userId": user_id,
            "action": action,
            "timestamp": when.isoformat() if isinstance(when, datetime) else when,
        }
        record.update(extra)
        return record

    return _make


@pytest.fixture
def reference_instant():
    return utc(2024, 1, 1, 18, 0)


# --- Database ----------------------------------------------------------------
@pytest.fixture
def db_session():
    # One in-memory database per test; StaticPool keeps it alive across threads
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
