# =============================================================================
# BODY MANUAL BACKEND - PROGRESS STORE
# =============================================================================
"""
Query interface over the progress database.

Wraps an explicitly injected aiosqlite connection and exposes the
count / sum / group-by / find-unique / find-many / create operations the
services are built on. Any SQLite failure surfaces as StorageError.
"""

import functools
import json
import logging
import sqlite3
from datetime import date, datetime
from typing import Iterable, NamedTuple, Optional

import aiosqlite
from cryptography.exceptions import InvalidTag
from pydantic import ValidationError

from database.encryption import decrypt_biometrics, encrypt_biometrics
from database.models import (
    AchievementAward,
    AchievementDefinition,
    AwardedAchievement,
    BiometricSnapshot,
    BodyArea,
    CompletionRecord,
    StreakState,
    StreakType,
    criteria_adapter,
)
from exceptions import InvalidCriteriaError, StorageError

logger = logging.getLogger(__name__)


# aiosqlite raises ValueError once the connection is closed
STORAGE_ERRORS = (sqlite3.Error, ValueError, InvalidTag)


class AreaTotals(NamedTuple):
    """Grouped completion totals for one body area."""
    sessions: int
    minutes: int
    timed_sessions: int
    last_practiced: Optional[datetime]


def storage_operation(name: str):
    """Convert storage failures raised by a store method into StorageError."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except STORAGE_ERRORS as e:
                logger.error(f"Storage operation '{name}' failed: {e}")
                raise StorageError(name, e) from e
        return wrapper
    return decorator


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _completion_filter(
    user_id: str,
    body_area: Optional[BodyArea] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> tuple[str, list]:
    clauses = ["user_id = ?"]
    params: list = [user_id]
    if body_area is not None:
        clauses.append("body_area = ?")
        params.append(body_area.value)
    if since is not None:
        clauses.append("completed_at >= ?")
        params.append(_iso(since))
    if until is not None:
        clauses.append("completed_at <= ?")
        params.append(_iso(until))
    return " AND ".join(clauses), params


class ProgressStore:
    """Storage handle for completions, streaks and achievements."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    # -------------------------------------------------------------------------
    # Completions
    # -------------------------------------------------------------------------

    @storage_operation("insert completion")
    async def insert_completion(self, record: CompletionRecord) -> CompletionRecord:
        ciphertext = iv = tag = None
        if record.biometric_data is not None:
            ciphertext, iv, tag = encrypt_biometrics(record.biometric_data)

        await self.db.execute(
            """INSERT INTO exercise_completions
               (id, user_id, exercise_id, body_area, completed_at, duration_minutes,
                difficulty_level, session_notes, mood, energy_level,
                biometric_encrypted, biometric_iv, biometric_tag, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.user_id,
                record.exercise_id,
                record.body_area.value,
                _iso(record.completed_at),
                record.duration_minutes,
                record.difficulty_level.value,
                record.session_notes,
                record.mood.value if record.mood else None,
                record.energy_level.value if record.energy_level else None,
                ciphertext,
                iv,
                tag,
                _iso(record.created_at),
            )
        )
        await self.db.commit()
        return record

    @storage_operation("count completions")
    async def count_completions(
        self,
        user_id: str,
        *,
        body_area: Optional[BodyArea] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        where, params = _completion_filter(user_id, body_area, since, until)
        cursor = await self.db.execute(
            f"SELECT COUNT(*) FROM exercise_completions WHERE {where}", params
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @storage_operation("sum durations")
    async def sum_duration(
        self,
        user_id: str,
        *,
        body_area: Optional[BodyArea] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        """Total minutes, missing durations counted as zero."""
        where, params = _completion_filter(user_id, body_area, since, until)
        cursor = await self.db.execute(
            f"SELECT COALESCE(SUM(duration_minutes), 0) FROM exercise_completions WHERE {where}",
            params
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @storage_operation("latest completion")
    async def latest_completion_at(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Optional[datetime]:
        where, params = _completion_filter(user_id, since=since, until=until)
        cursor = await self.db.execute(
            f"SELECT MAX(completed_at) FROM exercise_completions WHERE {where}", params
        )
        row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return datetime.fromisoformat(row[0])

    @storage_operation("group completions by body area")
    async def body_area_totals(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
    ) -> dict[BodyArea, AreaTotals]:
        """
        Session count, minutes and last completion per practiced body area.
        `timed_sessions` counts only completions that recorded a duration.
        """
        where, params = _completion_filter(user_id, since=since)
        cursor = await self.db.execute(
            f"""SELECT body_area, COUNT(*), COALESCE(SUM(duration_minutes), 0), COUNT(duration_minutes),
                       MAX(completed_at)
                FROM exercise_completions WHERE {where}
                GROUP BY body_area""",
            params
        )
        rows = await cursor.fetchall()
        return {
            BodyArea(row[0]): AreaTotals(
                sessions=row[1],
                minutes=row[2],
                timed_sessions=row[3],
                last_practiced=datetime.fromisoformat(row[4]) if row[4] else None,
            )
            for row in rows
        }

    @storage_operation("distinct body areas")
    async def distinct_body_areas(self, user_id: str, *, since: datetime) -> set[BodyArea]:
        where, params = _completion_filter(user_id, since=since)
        cursor = await self.db.execute(
            f"SELECT DISTINCT body_area FROM exercise_completions WHERE {where}", params
        )
        rows = await cursor.fetchall()
        return {BodyArea(row[0]) for row in rows}

    @storage_operation("exercise frequencies")
    async def exercise_frequencies(
        self,
        user_id: str,
        body_area: BodyArea,
        limit: Optional[int] = None,
    ) -> list[tuple[str, int]]:
        """
        Exercise ids with completion counts, most frequent first.
        Ties keep the order in which the exercises were first completed, which
        stands in for exercise catalog order since this store has no catalog.
        """
        where, params = _completion_filter(user_id, body_area=body_area)
        sql = f"""SELECT exercise_id, COUNT(*) AS n, MIN(completed_at) AS first_seen
                  FROM exercise_completions WHERE {where}
                  GROUP BY exercise_id
                  ORDER BY n DESC, first_seen ASC"""
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = await self.db.execute(sql, params)
        rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]

    @storage_operation("list completions")
    async def list_completions(
        self,
        user_id: str,
        *,
        body_area: Optional[BodyArea] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CompletionRecord]:
        """Completions newest first."""
        where, params = _completion_filter(user_id, body_area, since, until)
        sql = f"SELECT * FROM exercise_completions WHERE {where} ORDER BY completed_at DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = await self.db.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_completion(row) for row in rows]

    @storage_operation("attach biometrics")
    async def attach_biometrics(
        self,
        user_id: str,
        exercise_id: str,
        snapshot: BiometricSnapshot,
        since: datetime,
    ) -> int:
        """Backfill biometrics onto matching completions; returns rows updated."""
        ciphertext, iv, tag = encrypt_biometrics(snapshot)
        cursor = await self.db.execute(
            """UPDATE exercise_completions
               SET biometric_encrypted = ?, biometric_iv = ?, biometric_tag = ?
               WHERE user_id = ? AND exercise_id = ? AND completed_at >= ?""",
            (ciphertext, iv, tag, user_id, exercise_id, _iso(since))
        )
        await self.db.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_completion(row) -> CompletionRecord:
        biometrics = None
        if row["biometric_encrypted"] is not None:
            biometrics = decrypt_biometrics(
                row["biometric_encrypted"], row["biometric_iv"], row["biometric_tag"]
            )
        return CompletionRecord(
            id=row["id"],
            user_id=row["user_id"],
            exercise_id=row["exercise_id"],
            body_area=row["body_area"],
            completed_at=datetime.fromisoformat(row["completed_at"]),
            duration_minutes=row["duration_minutes"],
            difficulty_level=row["difficulty_level"],
            session_notes=row["session_notes"],
            mood=row["mood"],
            energy_level=row["energy_level"],
            biometric_data=biometrics,
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # -------------------------------------------------------------------------
    # Streaks
    # -------------------------------------------------------------------------

    @storage_operation("get streak")
    async def get_streak(
        self,
        user_id: str,
        streak_type: StreakType = StreakType.DAILY,
    ) -> Optional[StreakState]:
        cursor = await self.db.execute(
            "SELECT * FROM user_streaks WHERE user_id = ? AND streak_type = ?",
            (user_id, streak_type.value)
        )
        row = await cursor.fetchone()
        return self._row_to_streak(row) if row else None

    @storage_operation("list streaks")
    async def list_streaks(self, user_id: str) -> list[StreakState]:
        cursor = await self.db.execute(
            "SELECT * FROM user_streaks WHERE user_id = ? ORDER BY streak_type",
            (user_id,)
        )
        rows = await cursor.fetchall()
        return [self._row_to_streak(row) for row in rows]

    @storage_operation("create streak")
    async def create_streak(self, state: StreakState) -> bool:
        """
        Insert a streak row.

        Returns:
            True if created, False if the (user, type) row already exists
        """
        try:
            await self.db.execute(
                """INSERT INTO user_streaks
                   (user_id, streak_type, current_count, best_count, last_activity_date, started_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    state.user_id,
                    state.streak_type.value,
                    state.current_count,
                    state.best_count,
                    state.last_activity_date.isoformat() if state.last_activity_date else None,
                    _iso(state.started_at),
                )
            )
            await self.db.commit()
            return True
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            return False

    @storage_operation("update streak")
    async def compare_and_set_streak(
        self,
        state: StreakState,
        expected_last_activity: Optional[date],
    ) -> bool:
        """
        Write the streak counters only if the stored last-activity date still
        equals `expected_last_activity`.

        Returns:
            True if the row was updated, False if another writer got there first
        """
        cursor = await self.db.execute(
            """UPDATE user_streaks
               SET current_count = ?, best_count = ?, last_activity_date = ?, started_at = ?
               WHERE user_id = ? AND streak_type = ? AND last_activity_date IS ?""",
            (
                state.current_count,
                state.best_count,
                state.last_activity_date.isoformat() if state.last_activity_date else None,
                _iso(state.started_at),
                state.user_id,
                state.streak_type.value,
                expected_last_activity.isoformat() if expected_last_activity else None,
            )
        )
        await self.db.commit()
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_streak(row) -> StreakState:
        last_activity = row["last_activity_date"]
        return StreakState(
            user_id=row["user_id"],
            streak_type=row["streak_type"],
            current_count=row["current_count"],
            best_count=row["best_count"],
            last_activity_date=date.fromisoformat(last_activity) if last_activity else None,
            started_at=datetime.fromisoformat(row["started_at"]),
        )

    # -------------------------------------------------------------------------
    # Achievement definitions
    # -------------------------------------------------------------------------

    @storage_operation("insert achievement")
    async def insert_definition(self, definition: AchievementDefinition) -> bool:
        """Insert a catalog entry unless one with the same id exists."""
        cursor = await self.db.execute(
            """INSERT OR IGNORE INTO achievements
               (id, name, description, category, criteria, badge_icon, points, rarity, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                definition.id,
                definition.name,
                definition.description,
                definition.category.value,
                json.dumps(definition.criteria.model_dump(mode="json", by_alias=True, exclude_none=True)),
                definition.badge_icon,
                definition.points,
                definition.rarity.value,
                _iso(definition.created_at or datetime.now()),
            )
        )
        await self.db.commit()
        return cursor.rowcount == 1

    @storage_operation("get achievement")
    async def get_definition(self, achievement_id: str) -> Optional[AchievementDefinition]:
        """
        Raises:
            InvalidCriteriaError: If the stored criteria cannot be decoded
        """
        cursor = await self.db.execute(
            "SELECT * FROM achievements WHERE id = ?", (achievement_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_definition(row) if row else None

    @storage_operation("list achievements")
    async def list_definitions(
        self,
        *,
        exclude_ids: Iterable[str] = (),
        by_category: bool = False,
    ) -> list[AchievementDefinition]:
        """
        Catalog entries in insertion order, or by category then points.
        Entries whose criteria cannot be decoded are logged and skipped.
        """
        excluded = list(exclude_ids)
        sql = "SELECT * FROM achievements"
        if excluded:
            sql += f" WHERE id NOT IN ({','.join('?' * len(excluded))})"
        sql += " ORDER BY category ASC, points ASC" if by_category else " ORDER BY rowid ASC"

        cursor = await self.db.execute(sql, excluded)
        rows = await cursor.fetchall()

        definitions = []
        for row in rows:
            try:
                definitions.append(self._row_to_definition(row))
            except InvalidCriteriaError as e:
                logger.warning(f"Skipping achievement {row['id']}: {e.details.get('reason')}")
        return definitions

    @storage_operation("count achievements")
    async def count_definitions(self) -> int:
        cursor = await self.db.execute("SELECT COUNT(*) FROM achievements")
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_definition(row) -> AchievementDefinition:
        try:
            criteria = criteria_adapter.validate_json(row["criteria"])
        except ValidationError as e:
            raise InvalidCriteriaError(row["id"], str(e)) from e
        return AchievementDefinition(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            category=row["category"],
            criteria=criteria,
            badge_icon=row["badge_icon"],
            points=row["points"],
            rarity=row["rarity"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # -------------------------------------------------------------------------
    # Awards
    # -------------------------------------------------------------------------

    @storage_operation("earned achievement ids")
    async def earned_achievement_ids(self, user_id: str) -> set[str]:
        cursor = await self.db.execute(
            "SELECT achievement_id FROM user_achievements WHERE user_id = ?", (user_id,)
        )
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    @storage_operation("create award")
    async def create_award(
        self,
        user_id: str,
        achievement_id: str,
        progress_snapshot: dict,
        earned_at: datetime,
    ) -> bool:
        """
        Award an achievement to a user if not already earned.

        Returns:
            True if newly awarded, False if the user already had it
        """
        try:
            await self.db.execute(
                """INSERT INTO user_achievements (user_id, achievement_id, earned_at, progress_snapshot)
                   VALUES (?, ?, ?, ?)""",
                (user_id, achievement_id, _iso(earned_at), json.dumps(progress_snapshot))
            )
            await self.db.commit()
            return True
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            return False

    @storage_operation("get award")
    async def get_award(self, user_id: str, achievement_id: str) -> Optional[AchievementAward]:
        cursor = await self.db.execute(
            "SELECT * FROM user_achievements WHERE user_id = ? AND achievement_id = ?",
            (user_id, achievement_id)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return AchievementAward(
            id=row["id"],
            user_id=row["user_id"],
            achievement_id=row["achievement_id"],
            earned_at=datetime.fromisoformat(row["earned_at"]),
            progress_snapshot=json.loads(row["progress_snapshot"] or "{}"),
        )

    @storage_operation("list awards")
    async def list_awards(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[AwardedAchievement]:
        """Awards joined with their definitions, newest first."""
        sql = """SELECT ua.id AS award_id, ua.user_id, ua.achievement_id, ua.earned_at,
                        ua.progress_snapshot, a.*
                 FROM user_achievements ua
                 JOIN achievements a ON a.id = ua.achievement_id
                 WHERE ua.user_id = ?"""
        params: list = [user_id]
        if since is not None:
            sql += " AND ua.earned_at >= ?"
            params.append(_iso(since))
        sql += " ORDER BY ua.earned_at DESC, ua.id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        cursor = await self.db.execute(sql, params)
        rows = await cursor.fetchall()

        awards = []
        for row in rows:
            try:
                definition = self._row_to_definition(row)
            except InvalidCriteriaError as e:
                logger.warning(f"Skipping award of {row['achievement_id']}: {e.details.get('reason')}")
                continue
            awards.append(AwardedAchievement(
                id=row["award_id"],
                user_id=row["user_id"],
                achievement_id=row["achievement_id"],
                earned_at=datetime.fromisoformat(row["earned_at"]),
                progress_snapshot=json.loads(row["progress_snapshot"] or "{}"),
                achievement=definition,
            ))
        return awards

    @storage_operation("count awards")
    async def count_awards(self) -> int:
        cursor = await self.db.execute("SELECT COUNT(*) FROM user_achievements")
        row = await cursor.fetchone()
        return row[0] if row else 0

    @storage_operation("group awards by achievement")
    async def award_counts(
        self,
        *,
        below: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, int]]:
        """
        (achievement_id, award count) pairs, most awarded first.

        Args:
            below: Only keep achievements awarded fewer than this many times
            limit: Maximum number of pairs
        """
        sql = """SELECT achievement_id, COUNT(*) AS n FROM user_achievements
                 GROUP BY achievement_id"""
        params: list = []
        if below is not None:
            sql += " HAVING n < ?"
            params.append(below)
        sql += " ORDER BY n DESC, MIN(earned_at) ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = await self.db.execute(sql, params)
        rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]
