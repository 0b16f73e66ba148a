import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from otpgate.crud import crud
from otpgate.database import database

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "otp_cleanup"


def run_cleanup_once() -> int:
    """Open a short-lived session and sweep expired OTP sessions."""
    db = database.SessionLocal()
    try:
        return crud.cleanup_expired_sessions(db)
    finally:
        db.close()


def _on_job_event(event):
    job_id = getattr(event, "job_id", "?")
    if event.code == EVENT_JOB_MISSED:
        logger.warning("Scheduler missed a run of job_id=%s", job_id)
    elif event.code == EVENT_JOB_MAX_INSTANCES:
        logger.warning("Scheduler skipped job_id=%s: previous run still active", job_id)
    elif event.code == EVENT_JOB_ERROR:
        logger.error("Scheduler job_id=%s failed: %s", job_id, getattr(event, "exception", None))


def build_cleanup_scheduler(interval_seconds: int) -> BackgroundScheduler:
    """
    Scheduler with a single job that sweeps expired sessions every
    `interval_seconds`. The caller starts and shuts it down.
    """
    scheduler = BackgroundScheduler(timezone="UTC", daemon=True)
    scheduler.add_listener(_on_job_event, EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES | EVENT_JOB_ERROR)
    scheduler.add_job(
        run_cleanup_once,
        trigger=IntervalTrigger(seconds=interval_seconds),
        id=CLEANUP_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=interval_seconds,
    )
    return scheduler
