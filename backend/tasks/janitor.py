# =============================================================================
# BODY MANUAL BACKEND - JANITOR BACKGROUND TASK
# =============================================================================
"""
Janitor task enforcing the data retention policy.
Runs daily to prune exercise completions older than the retention period.
"""

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings

logger = logging.getLogger(__name__)

JOB_ID = "retention_cleanup"

# Global scheduler instance
_scheduler: BackgroundScheduler | None = None


def get_scheduler() -> BackgroundScheduler:
    """Get or create the background scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


def start_scheduler() -> None:
    """
    Start the background scheduler with the retention job.

    The janitor runs daily at the configured hour (default: 3:00 AM).
    """
    settings = get_settings()
    scheduler = get_scheduler()

    scheduler.add_job(
        run_retention_cleanup,
        trigger=CronTrigger(hour=settings.janitor_schedule_hour, minute=0),
        id=JOB_ID,
        name="Completion Retention Cleanup",
        replace_existing=True
    )

    scheduler.start()
    logger.info(
        f"Janitor scheduled to run daily at {settings.janitor_schedule_hour:02d}:00 "
        f"(retention: {settings.data_retention_days} days)"
    )


def shutdown_scheduler() -> None:
    """Gracefully shutdown the background scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler shutdown complete")


def _retention_cutoff(now: Optional[datetime] = None) -> datetime:
    settings = get_settings()
    return (now or datetime.now()) - timedelta(days=settings.data_retention_days)


def run_retention_cleanup(
    db_path: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Delete completion records older than the retention period.

    Streak counters and awards are kept; they summarize history rather
    than store it.

    Returns:
        Dict with cleanup statistics
    """
    settings = get_settings()
    db_path = db_path or str(settings.database_path)
    cutoff = _retention_cutoff(now)

    logger.info(f"Janitor starting cleanup (retention: {settings.data_retention_days} days)")

    stats = {
        "records_deleted": 0,
        "cutoff": cutoff.isoformat(),
        "errors": []
    }

    try:
        # Sync connection for the background thread
        conn = sqlite3.connect(db_path)
        try:
            cursor = conn.execute(
                "DELETE FROM exercise_completions WHERE completed_at < ?",
                (cutoff.isoformat(),)
            )
            stats["records_deleted"] = cursor.rowcount
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Janitor cleanup complete: {stats['records_deleted']} completion records removed")

    except sqlite3.Error as e:
        error_msg = f"Janitor cleanup failed: {e}"
        logger.error(error_msg)
        stats["errors"].append(error_msg)

    return stats


def get_retention_stats(db_path: Optional[str] = None) -> dict:
    """
    Get current retention statistics and the next cleanup time.

    Returns:
        Dict with stored record counts and next cleanup time
    """
    settings = get_settings()
    db_path = db_path or str(settings.database_path)

    stats = {
        "total_records": 0,
        "records_pending_cleanup": 0,
        "next_cleanup": None
    }

    try:
        conn = sqlite3.connect(db_path)
        try:
            stats["total_records"] = conn.execute(
                "SELECT COUNT(*) FROM exercise_completions"
            ).fetchone()[0]
            stats["records_pending_cleanup"] = conn.execute(
                "SELECT COUNT(*) FROM exercise_completions WHERE completed_at < ?",
                (_retention_cutoff().isoformat(),)
            ).fetchone()[0]
        finally:
            conn.close()

        scheduler = get_scheduler()
        if scheduler.running:
            job = scheduler.get_job(JOB_ID)
            if job:
                stats["next_cleanup"] = job.next_run_time.isoformat()

    except sqlite3.Error as e:
        logger.warning(f"Failed to get retention stats: {e}")

    return stats
