"""Tests for the retention janitor."""

from datetime import datetime, timedelta

import pytest

from database.connection import connect_database, init_database
from database.store import ProgressStore
from main import build_services
from tasks.janitor import get_retention_stats, run_retention_cleanup


@pytest.fixture
async def file_db(tmp_path):
    """File-backed database so the janitor's sync connection sees the data."""
    db_path = tmp_path / "retention.db"
    conn = await connect_database(f"sqlite:///{db_path}")
    await init_database(conn)
    yield conn, str(db_path)
    await conn.close()


async def _seed(conn, clock, make_completion, *timestamps):
    services = build_services(ProgressStore(conn), clock=clock)
    for ts in timestamps:
        clock.set(ts)
        await services.tracker.record_completion("user-1", make_completion())
    return services


@pytest.mark.asyncio
async def test_cleanup_deletes_only_expired_completions(file_db, clock, make_completion):
    conn, db_path = file_db
    now = datetime(2026, 10, 12, 3, 0)
    services = await _seed(
        conn,
        clock,
        make_completion,
        datetime(2024, 6, 1, 8, 0),
        datetime(2025, 10, 11, 8, 0),
        datetime(2026, 10, 11, 8, 0),
    )

    stats = run_retention_cleanup(db_path, now=now)

    assert stats["errors"] == []
    assert stats["records_deleted"] == 2
    assert stats["cutoff"] == (now - timedelta(days=365)).isoformat()
    assert await services.store.count_completions("user-1") == 1


@pytest.mark.asyncio
async def test_cleanup_keeps_streaks(file_db, clock, make_completion):
    conn, db_path = file_db
    services = await _seed(conn, clock, make_completion, datetime(2020, 1, 1, 8, 0))

    run_retention_cleanup(db_path, now=datetime(2026, 10, 12))

    [streak] = await services.tracker.get_streak_data("user-1")
    assert await services.store.count_completions("user-1") == 0
    assert streak.best_count == 1


def test_cleanup_reports_errors(tmp_path):
    stats = run_retention_cleanup(str(tmp_path / "empty.db"))

    assert stats["records_deleted"] == 0
    assert len(stats["errors"]) == 1
    assert "no such table" in stats["errors"][0]


@pytest.mark.asyncio
async def test_retention_stats(file_db, clock, make_completion):
    conn, db_path = file_db
    recent = datetime.now() - timedelta(days=1)
    await _seed(conn, clock, make_completion, datetime(2020, 1, 1, 8, 0), recent)

    stats = get_retention_stats(db_path)

    assert stats["total_records"] == 2
    assert stats["records_pending_cleanup"] == 1
    assert stats["next_cleanup"] is None
