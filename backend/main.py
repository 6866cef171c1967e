# =============================================================================
# BODY MANUAL BACKEND - APPLICATION WIRING
# =============================================================================
"""
Application lifespan for the Body Manual progress backend.
Builds the storage handle and services consumed by the HTTP layer.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from config import get_settings
from database.connection import connect_database, init_database, close_database
from database.encryption import verify_key_strength
from database.store import ProgressStore
from services.achievement_engine import AchievementEngine
from services.achievement_progress import AchievementProgressCalculator
from services.catalog import seed_achievements
from services.progress_tracker import ProgressTracker
from tasks.janitor import start_scheduler, shutdown_scheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Services sharing one storage handle."""
    store: ProgressStore
    tracker: ProgressTracker
    achievements: AchievementEngine
    progress: AchievementProgressCalculator


def configure_logging() -> None:
    """Configure root logging from settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_services(
    store: ProgressStore,
    clock: Callable[[], datetime] = datetime.now,
) -> Services:
    """Wire the services around an existing store."""
    engine = AchievementEngine(store, clock=clock)
    return Services(
        store=store,
        tracker=ProgressTracker(store, clock=clock),
        achievements=engine,
        progress=AchievementProgressCalculator(store, engine),
    )


@asynccontextmanager
async def lifespan(
    database_url: Optional[str] = None,
    run_janitor: bool = True,
) -> AsyncIterator[Services]:
    """
    Application lifespan manager.
    Handles startup/shutdown of the database, catalog and janitor.
    """
    settings = get_settings()
    configure_logging()
    logger.info("🚀 Starting Body Manual progress backend...")

    if not verify_key_strength():
        logger.warning("⚠ Default or weak ENCRYPTION_KEY in use for biometric data")

    conn = await connect_database(database_url)
    await init_database(conn)
    logger.info("✓ Database initialized")

    store = ProgressStore(conn)
    if settings.seed_achievements:
        await seed_achievements(store)
        logger.info("✓ Achievement catalog seeded")

    if run_janitor:
        start_scheduler()
        logger.info("✓ Background scheduler started")

    try:
        yield build_services(store)
    finally:
        logger.info("Shutting down Body Manual backend...")
        if run_janitor:
            shutdown_scheduler()
        await close_database(conn)
        logger.info("✓ Shutdown complete")
