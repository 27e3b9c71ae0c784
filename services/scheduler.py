"""
Background Job Scheduler - Runs periodic reminder and notification jobs.

Jobs:
- upcoming_reminders: polls school tasks/meetings due soon (interval from
  the reminder settings)
- work_task_reminders: notifies assignees of work tasks whose remind_at passed
- cleanup_notifications: deletes old read notifications
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

logger = logging.getLogger(__name__)

UPCOMING_REMINDERS_JOB = 'upcoming_reminders'
WORK_TASK_REMINDERS_JOB = 'work_task_reminders'
CLEANUP_NOTIFICATIONS_JOB = 'cleanup_notifications'

WORK_TASK_REMINDERS_INTERVAL = 60
CLEANUP_INTERVAL = 24 * 60 * 60
NOTIFICATION_RETENTION_DAYS = 30

# Global scheduler instance
_scheduler = None


@dataclass
class ScheduledJob:
    """A function run every `interval` seconds; times are naive UTC."""

    func: Callable
    interval: int
    next_run: datetime
    kwargs: Dict[str, Any] = field(default_factory=dict)
    last_run: Optional[datetime] = None
    run_count: int = 0
    last_error: Optional[str] = None
    enabled: bool = True

    def is_due(self, now: datetime) -> bool:
        return self.enabled and now >= self.next_run

    def run(self, now: datetime, reschedule: bool = True) -> bool:
        """Call the function once and record the outcome. Returns True on success."""
        try:
            self.func(**self.kwargs)
        except Exception as e:
            self.last_error = str(e)
            ok = False
        else:
            self.last_run = now
            self.run_count += 1
            self.last_error = None
            ok = True
        if reschedule:
            self.next_run = now + timedelta(seconds=self.interval)
        return ok

    def status(self) -> Dict[str, Any]:
        return {
            'interval': self.interval,
            'last_run': self.last_run.isoformat() if self.last_run else None,
            'next_run': self.next_run.isoformat() if self.next_run else None,
            'run_count': self.run_count,
            'last_error': self.last_error,
            'enabled': self.enabled
        }


class BackgroundScheduler:
    """Runs due jobs from a daemon thread that wakes every tick_seconds."""

    def __init__(self, tick_seconds: float = 5):
        self.jobs: Dict[str, ScheduledJob] = {}
        self.running = False
        self.tick_seconds = tick_seconds
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.RLock()
        self._stop_event = threading.Event()

    def add_job(self, job_id: str, func: Callable, interval_seconds: int,
                run_immediately: bool = False, kwargs: Dict = None):
        """
        Add a job to the scheduler. An existing job with the same ID is replaced.

        Args:
            job_id: Unique identifier for the job
            func: Function to call
            interval_seconds: How often to run (in seconds)
            run_immediately: Whether the first run is due right away
            kwargs: Keyword arguments to pass to the function
        """
        now = datetime.utcnow()
        first_run = now if run_immediately else now + timedelta(seconds=interval_seconds)
        with self._lock:
            self.jobs[job_id] = ScheduledJob(func, interval_seconds, first_run, dict(kwargs or {}))
        logger.info(f"Added job '{job_id}' with interval {interval_seconds}s")

    def reschedule_job(self, job_id: str, interval_seconds: int) -> bool:
        """Change a job's interval; the next run is counted from now."""
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None:
                return False
            if job.interval == interval_seconds:
                return True
            job.interval = interval_seconds
            job.next_run = datetime.utcnow() + timedelta(seconds=interval_seconds)
        logger.info(f"Rescheduled job '{job_id}' to every {interval_seconds}s")
        return True

    def remove_job(self, job_id: str):
        with self._lock:
            if self.jobs.pop(job_id, None) is not None:
                logger.info(f"Removed job '{job_id}'")

    def _set_enabled(self, job_id: str, enabled: bool):
        with self._lock:
            if job_id in self.jobs:
                self.jobs[job_id].enabled = enabled

    def enable_job(self, job_id: str):
        self._set_enabled(job_id, True)

    def disable_job(self, job_id: str):
        """Disable a job without removing it."""
        self._set_enabled(job_id, False)

    def get_job_status(self) -> Dict[str, Any]:
        with self._lock:
            return {job_id: job.status() for job_id, job in self.jobs.items()}

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name='finomik-scheduler', daemon=True)
        self._thread.start()
        logger.info("Background scheduler started")

    def stop(self):
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Background scheduler stopped")

    def run_pending(self, now: datetime = None) -> int:
        """Run every enabled job that is due. Returns the number of jobs run."""
        now = now or datetime.utcnow()
        with self._lock:
            due = [(job_id, job) for job_id, job in self.jobs.items() if job.is_due(now)]

        for job_id, job in due:
            logger.debug(f"Running job '{job_id}'")
            if not job.run(now):
                logger.error(f"Job '{job_id}' failed: {job.last_error}")
        return len(due)

    def _run_loop(self):
        while self.running and not self._stop_event.is_set():
            self.run_pending()
            self._stop_event.wait(timeout=self.tick_seconds)

    def run_job_now(self, job_id: str) -> bool:
        """Run a job outside its schedule; its next run is unchanged."""
        with self._lock:
            job = self.jobs.get(job_id)
        if job is None:
            return False

        ok = job.run(datetime.utcnow(), reschedule=False)
        if not ok:
            logger.error(f"Manual job run '{job_id}' failed: {job.last_error}")
        return ok


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def upcoming_reminders_job():
    """Poll for school tasks and meetings coming due and notify each once."""
    from database.connection import is_db_configured
    from services.reminder_service import get_reminder_poller

    if not is_db_configured():
        return

    poller = get_reminder_poller()
    poller.check()

    # Pick up interval changes made through the settings endpoint
    get_scheduler().reschedule_job(UPCOMING_REMINDERS_JOB, poller.interval_seconds)


def work_task_reminders_job():
    """Create notifications for work tasks whose reminder time has passed."""
    from database.connection import get_db_session, is_db_configured
    from services.work_task_repository import WorkTaskRepository

    if not is_db_configured():
        return

    with get_db_session() as session:
        WorkTaskRepository(session).process_reminder_notifications()


def cleanup_notifications_job():
    """Delete read notifications older than the retention period."""
    from database.connection import get_db_session, is_db_configured
    from services.notification_service import NotificationService

    if not is_db_configured():
        return

    with get_db_session() as session:
        deleted = NotificationService(session).cleanup_old_notifications(days=NOTIFICATION_RETENTION_DAYS)
        if deleted > 0:
            logger.info(f"Cleaned up {deleted} old notifications")


def reschedule_reminder_job(interval_seconds: int) -> bool:
    """Apply a new reminder check interval to the running scheduler."""
    return get_scheduler().reschedule_job(UPCOMING_REMINDERS_JOB, interval_seconds)


def register_jobs(scheduler: BackgroundScheduler, reminder_interval: int):
    scheduler.add_job(
        UPCOMING_REMINDERS_JOB,
        upcoming_reminders_job,
        interval_seconds=reminder_interval,
        run_immediately=True
    )
    scheduler.add_job(
        WORK_TASK_REMINDERS_JOB,
        work_task_reminders_job,
        interval_seconds=WORK_TASK_REMINDERS_INTERVAL,
        run_immediately=True
    )
    scheduler.add_job(
        CLEANUP_NOTIFICATIONS_JOB,
        cleanup_notifications_job,
        interval_seconds=CLEANUP_INTERVAL,
        run_immediately=False
    )


def init_scheduler():
    """Initialize the scheduler with default jobs and start it."""
    from services.reminder_service import get_reminder_poller

    scheduler = get_scheduler()
    try:
        reminder_interval = get_reminder_poller().interval_seconds
    except Exception as e:
        logger.warning(f"Could not read reminder interval, using 60s: {e}")
        reminder_interval = 60

    register_jobs(scheduler, reminder_interval)
    scheduler.start()
    logger.info("Scheduler initialized with default jobs")

    return scheduler
