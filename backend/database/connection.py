# =============================================================================
# BODY MANUAL BACKEND - DATABASE CONNECTION
# =============================================================================
"""
Async SQLite connection management using aiosqlite.

Connections are created explicitly and handed to the store; there is no
module-level connection.
"""

import logging
from pathlib import Path
from typing import Optional

import aiosqlite

from config import get_settings

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


async def connect_database(database_url: Optional[str] = None) -> aiosqlite.Connection:
    """
    Open a database connection.

    Args:
        database_url: sqlite:/// URL; defaults to the configured DATABASE_URL
    """
    url = database_url or get_settings().database_url
    path = url.replace("sqlite:///", "")

    if path != MEMORY_DATABASE:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    logger.debug(f"Connected to database at {path}")
    return conn


async def init_database(conn: aiosqlite.Connection) -> None:
    """
    Initialize database schema.
    Creates all tables if they don't exist.
    """
    # One row per finished exercise session
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS exercise_completions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            exercise_id TEXT NOT NULL,
            body_area TEXT NOT NULL,
            completed_at TIMESTAMP NOT NULL,
            duration_minutes INTEGER,
            difficulty_level TEXT NOT NULL,
            session_notes TEXT,
            mood TEXT,
            energy_level TEXT,
            biometric_encrypted BLOB,
            biometric_iv BLOB,
            biometric_tag BLOB,
            created_at TIMESTAMP NOT NULL
        )
    """)

    # Streak tracking, one row per (user, streak type)
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            streak_type TEXT NOT NULL DEFAULT 'daily',
            current_count INTEGER NOT NULL DEFAULT 0,
            best_count INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            started_at TIMESTAMP NOT NULL,
            UNIQUE(user_id, streak_type),
            CHECK (best_count >= current_count)
        )
    """)

    # Achievement catalog, criteria stored as a JSON descriptor
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL,
            criteria TEXT NOT NULL,
            badge_icon TEXT NOT NULL DEFAULT '',
            points INTEGER NOT NULL DEFAULT 0,
            rarity TEXT NOT NULL DEFAULT 'common',
            created_at TIMESTAMP NOT NULL
        )
    """)

    # Awards
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            achievement_id TEXT NOT NULL,
            earned_at TIMESTAMP NOT NULL,
            progress_snapshot TEXT,
            FOREIGN KEY (achievement_id) REFERENCES achievements (id) ON DELETE CASCADE,
            UNIQUE(user_id, achievement_id)
        )
    """)

    # Create indexes for performance
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_completions_user_time "
        "ON exercise_completions(user_id, completed_at)"
    )
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_completions_user_area "
        "ON exercise_completions(user_id, body_area)"
    )
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_user_achievements_user "
        "ON user_achievements(user_id, earned_at)"
    )

    await conn.commit()


async def close_database(conn: Optional[aiosqlite.Connection]) -> None:
    """Close database connection."""
    if conn is not None:
        await conn.close()
