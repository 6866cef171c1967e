# =============================================================================
# BODY MANUAL BACKEND - DATABASE PACKAGE
# =============================================================================
"""Database module exports."""

from .connection import connect_database, init_database, close_database
from .store import ProgressStore
from .models import (
    AchievementDefinition,
    AchievementProgress,
    BodyArea,
    BodyAreaStats,
    CompletionRecord,
    ExerciseCompletion,
    ProgressSnapshot,
    StreakState,
)

__all__ = [
    "connect_database",
    "init_database",
    "close_database",
    "ProgressStore",
    "AchievementDefinition",
    "AchievementProgress",
    "BodyArea",
    "BodyAreaStats",
    "CompletionRecord",
    "ExerciseCompletion",
    "ProgressSnapshot",
    "StreakState",
]
