"""
Pytest configuration and fixtures for backend tests.
Environment variables are set before any application module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-for-biometrics"

from datetime import datetime, timedelta

import pytest

from database.connection import connect_database, init_database
from database.models import BodyArea, ExerciseCompletion
from database.store import ProgressStore
from main import build_services

# Monday
MONDAY = datetime(2026, 10, 12, 9, 30)


class FakeClock:
    """Settable clock injected in place of datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def clock():
    return FakeClock(MONDAY)


@pytest.fixture
async def db():
    """Fresh in-memory database per test."""
    conn = await connect_database("sqlite:///:memory:")
    await init_database(conn)
    yield conn
    await conn.close()


@pytest.fixture
def store(db):
    return ProgressStore(db)


@pytest.fixture
def services(store, clock):
    return build_services(store, clock=clock)


@pytest.fixture
def tracker(services):
    return services.tracker


@pytest.fixture
def engine(services):
    return services.achievements


@pytest.fixture
def calculator(services):
    return services.progress


@pytest.fixture
def make_completion():
    """Factory for exercise completions."""
    def _make(
        body_area: BodyArea = BodyArea.NERVENSYSTEM,
        exercise_id: str = "box-breathing",
        duration_minutes=10,
        **kwargs,
    ) -> ExerciseCompletion:
        return ExerciseCompletion(
            exercise_id=exercise_id,
            body_area=body_area,
            duration_minutes=duration_minutes,
            **kwargs,
        )
    return _make
