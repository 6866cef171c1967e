# =============================================================================
# BODY MANUAL BACKEND - SERVICES PACKAGE
# =============================================================================
"""Services module exports."""

from .progress_tracker import ProgressTracker
from .achievement_engine import AchievementEngine
from .achievement_progress import AchievementProgressCalculator
from .catalog import seed_achievements

__all__ = [
    "ProgressTracker",
    "AchievementEngine",
    "AchievementProgressCalculator",
    "seed_achievements"
]
