"""
Background scheduler. Runs periodic jobs inside the FastAPI process.

Jobs:
  - Auto-resume of expired pauses (daily, AUTO_RESUME_HOUR in TIMEZONE)
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from mealsub.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_auto_resume():
    from mealsub.infrastructure.db.session import session_scope
    from mealsub.application.auto_resume import auto_resume_expired_pauses
    from mealsub.domain.calendar import local_now

    today = local_now(get_settings().TIMEZONE).date()
    try:
        with session_scope() as db:
            auto_resume_expired_pauses(db, today=today)
    except Exception:
        logger.exception("Auto-resume job failed")


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    settings = get_settings()

    scheduler.add_job(
        _run_auto_resume,
        CronTrigger(hour=settings.AUTO_RESUME_HOUR, minute=5, timezone=settings.TIMEZONE),
        id="auto_resume",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: auto_resume (%02d:05 %s)",
        settings.AUTO_RESUME_HOUR, settings.TIMEZONE,
    )


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
