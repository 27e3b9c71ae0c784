"""
Tests for the background job scheduler and its jobs
"""
from datetime import datetime, timedelta

import pytest
from unittest.mock import Mock, patch

from services.scheduler import (
    BackgroundScheduler,
    UPCOMING_REMINDERS_JOB,
    WORK_TASK_REMINDERS_JOB,
    CLEANUP_NOTIFICATIONS_JOB,
    get_scheduler,
    register_jobs,
    reschedule_reminder_job,
    upcoming_reminders_job,
    work_task_reminders_job,
)


@pytest.mark.unit
class TestBackgroundScheduler:
    """Tests for job bookkeeping"""

    def test_run_pending_runs_due_jobs_only(self):
        """Test that only due jobs run and their next run moves forward"""
        scheduler = BackgroundScheduler()
        due = Mock()
        later = Mock()
        scheduler.add_job('due', due, interval_seconds=60, run_immediately=True)
        scheduler.add_job('later', later, interval_seconds=60)

        now = datetime.utcnow() + timedelta(seconds=1)
        assert scheduler.run_pending(now) == 1

        due.assert_called_once()
        later.assert_not_called()
        status = scheduler.get_job_status()['due']
        assert status['run_count'] == 1
        assert status['next_run'] == (now + timedelta(seconds=60)).isoformat()

    def test_failed_job_records_error(self):
        """Test that a failing job keeps its error and is rescheduled"""
        scheduler = BackgroundScheduler()
        scheduler.add_job('boom', Mock(side_effect=RuntimeError('db down')), 30, run_immediately=True)

        scheduler.run_pending(datetime.utcnow() + timedelta(seconds=1))

        status = scheduler.get_job_status()['boom']
        assert status['last_error'] == 'db down'
        assert status['run_count'] == 0

    def test_disabled_jobs_do_not_run(self):
        """Test that disabled jobs are skipped"""
        scheduler = BackgroundScheduler()
        job = Mock()
        scheduler.add_job('job', job, 30, run_immediately=True)
        scheduler.disable_job('job')

        assert scheduler.run_pending(datetime.utcnow() + timedelta(seconds=1)) == 0
        job.assert_not_called()

    def test_kwargs_are_passed(self):
        """Test that job kwargs reach the function"""
        scheduler = BackgroundScheduler()
        job = Mock()
        scheduler.add_job('job', job, 30, kwargs={'days': 7})

        assert scheduler.run_job_now('job') is True
        job.assert_called_once_with(days=7)

    def test_run_job_now_unknown(self):
        """Test that running an unknown job returns False"""
        assert BackgroundScheduler().run_job_now('missing') is False

    def test_reschedule_job(self):
        """Test changing a job interval"""
        scheduler = BackgroundScheduler()
        scheduler.add_job('job', Mock(), 60)

        assert scheduler.reschedule_job('job', 300) is True
        assert scheduler.get_job_status()['job']['interval'] == 300
        assert scheduler.reschedule_job('missing', 300) is False

    def test_start_and_stop(self):
        """Test that the scheduler thread starts and stops"""
        scheduler = BackgroundScheduler(tick_seconds=0.01)
        scheduler.start()
        assert scheduler.running is True
        scheduler.stop()
        assert scheduler.running is False


@pytest.mark.unit
class TestSchedulerJobs:
    """Tests for the registered jobs"""

    def test_register_jobs(self):
        """Test that the reminder, work task and cleanup jobs are registered"""
        scheduler = BackgroundScheduler()
        register_jobs(scheduler, reminder_interval=120)

        status = scheduler.get_job_status()
        assert set(status) == {UPCOMING_REMINDERS_JOB, WORK_TASK_REMINDERS_JOB, CLEANUP_NOTIFICATIONS_JOB}
        assert status[UPCOMING_REMINDERS_JOB]['interval'] == 120

    def test_reschedule_reminder_job(self):
        """Test that a settings change reaches the global scheduler"""
        register_jobs(get_scheduler(), reminder_interval=60)

        assert reschedule_reminder_job(600) is True
        assert get_scheduler().get_job_status()[UPCOMING_REMINDERS_JOB]['interval'] == 600

    def test_upcoming_reminders_job_follows_interval(self, db_engine):
        """Test that the reminder job polls and picks up the configured interval"""
        register_jobs(get_scheduler(), reminder_interval=60)
        poller = Mock()
        poller.interval_seconds = 300

        with patch('services.reminder_service.get_reminder_poller', return_value=poller):
            upcoming_reminders_job()

        poller.check.assert_called_once()
        assert get_scheduler().get_job_status()[UPCOMING_REMINDERS_JOB]['interval'] == 300

    def test_work_task_reminders_job(self, db_engine, db_session):
        """Test that the work task job notifies passed reminders"""
        from services.work_task_repository import WorkTaskRepository

        repo = WorkTaskRepository(db_session)
        repo.create_task({'title': 'Llamar gestoría', 'remind_at': '2020-01-01T09:00:00'}, 'u1')
        db_session.commit()

        work_task_reminders_job()

        db_session.expire_all()
        assert repo.get_unread_notification_count('u1') == 1
