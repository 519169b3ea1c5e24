"""Guidepost - Scheduler Jobs.

APScheduler daily job that prunes usage counters older than the
retention window. Usage keys roll over at UTC midnight, so old rows are
never read again; pruning only bounds table growth.
"""

from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from guidepost.context import AppContext
from guidepost.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


async def prune_usage_job(ctx: AppContext) -> int:
    """Delete usage records older than ``usage_retention_days``."""
    cutoff = (
        datetime.now(timezone.utc) - timedelta(days=ctx.settings.usage_retention_days)
    ).date()
    logger.info(f"Scheduled usage prune starting (before {cutoff})...")
    try:
        removed = ctx.usage.prune_before(cutoff)
        logger.info(f"Usage prune complete. Removed {removed} records")
        return removed
    except Exception as e:
        logger.error(f"Usage prune failed: {e}")
        return 0


def start_scheduler(ctx: AppContext):
    """Configure and start the scheduler."""
    if not ctx.settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        prune_usage_job,
        "cron",
        args=[ctx],
        hour=ctx.settings.usage_prune_hour,
        minute=0,
        id="prune_usage",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Usage prune at {ctx.settings.usage_prune_hour}:00 UTC")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
