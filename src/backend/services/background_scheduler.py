"""
Background Scheduler Service

Manages scheduled background tasks using APScheduler:
- Schedule sweep (interval): publishes due activities, applies auto-delete
  and auto-archive
- One-shot sweep at the next known publish time, so scheduled activities go
  live on time between interval runs

This runs in-process with the FastAPI application.
"""

import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from core.clock import from_ms, now_ms
from core.config import settings
from schemas.activity import SweepResult

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "activity_sweep"
NEXT_PUBLISH_JOB_ID = "activity_sweep_next_publish"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def _build_lifecycle_manager():
    from repositories.provider import get_activity_repository, get_poll_vote_repository
    from services.lifecycle import ActivityLifecycleManager

    return ActivityLifecycleManager(
        await get_activity_repository(),
        await get_poll_vote_repository(),
    )


def schedule_next_publish(next_publish_at: int | None) -> None:
    """Arm (or re-arm) the one-shot sweep at the next publish time."""
    scheduler = get_scheduler()
    if next_publish_at is None or not scheduler.running:
        return

    scheduler.add_job(
        sweep_job,
        trigger=DateTrigger(run_date=from_ms(next_publish_at)),
        id=NEXT_PUBLISH_JOB_ID,
        name="Sweep At Next Publish",
        replace_existing=True,
        max_instances=1,
    )
    logger.debug(f"Next publish sweep armed for {next_publish_at}")


async def sweep_job() -> SweepResult | None:
    """
    Background job running one schedule sweep.

    The sweep is idempotent, so overlapping runs across instances are safe.
    """
    try:
        manager = await _build_lifecycle_manager()
        now = now_ms()
        result = await manager.sweep(now)
        schedule_next_publish(await manager.next_publish_at(now))

        if result.updated or result.deleted or result.archived:
            logger.info(
                f"Sweep completed: published={result.updated}, "
                f"deleted={result.deleted}, archived={result.archived}"
            )
        return result
    except Exception as e:
        logger.error(f"Sweep job failed: {e}", exc_info=True)
        return None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _scheduler


async def start_scheduler() -> None:
    """Start the background scheduler with the sweep job."""
    scheduler = get_scheduler()

    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        sweep_job,
        trigger=IntervalTrigger(seconds=settings.SWEEP_INTERVAL_SECONDS),
        id=SWEEP_JOB_ID,
        name="Activity Sweep",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Added activity sweep job (every {settings.SWEEP_INTERVAL_SECONDS}s)")

    scheduler.start()
    logger.info("Background scheduler started")

    # Catch up on anything that came due while the app was down
    await sweep_job()


async def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.info("Stopping background scheduler...")
        _scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")

    _scheduler = None
