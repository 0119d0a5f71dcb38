"""
APSchedulerBackend unit tests.

Covers:
- start / shutdown idempotence
- add_job with cron_expression, raw cron fields and interval triggers
- add_job forwards the job id with replace_existing
"""
from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from club.system.scheduler_backend import APSchedulerBackend


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def backend():
    """Backend on a scheduler that is never started."""
    return APSchedulerBackend(BackgroundScheduler())


# ── Tests ─────────────────────────────────────────────────


class TestLifecycle:

    def test_start_and_shutdown(self):
        scheduler = MagicMock()
        scheduler.running = False
        backend = APSchedulerBackend(scheduler)
        backend.start()
        scheduler.start.assert_called_once()

        scheduler.running = True
        backend.start()
        scheduler.start.assert_called_once()
        backend.shutdown()
        scheduler.shutdown.assert_called_once_with(wait=False)

    def test_shutdown_when_not_running(self):
        scheduler = MagicMock()
        scheduler.running = False
        APSchedulerBackend(scheduler).shutdown()
        scheduler.shutdown.assert_not_called()


class TestJobs:

    def test_add_cron_expression(self, backend):
        backend.add_job("mid_month", lambda: None, "cron", cron_expression="0 0 15 * *")
        job = backend.scheduler.get_job("mid_month")
        assert isinstance(job.trigger, CronTrigger)
        assert "day='15'" in str(job.trigger)

    def test_add_cron_fields(self, backend):
        backend.add_job("month_end", lambda: None, "cron", day="last", hour=0, minute=0)
        assert "day='last'" in str(backend.scheduler.get_job("month_end").trigger)

    def test_add_interval(self, backend):
        backend.add_job("sweep", lambda: None, "interval", minutes=30)
        assert isinstance(backend.scheduler.get_job("sweep").trigger, IntervalTrigger)

    def test_add_job_passes_id_and_replace_flag(self):
        scheduler = MagicMock()
        func = MagicMock()
        APSchedulerBackend(scheduler).add_job("sweep", func, "interval", minutes=30)
        scheduler.add_job.assert_called_once_with(
            func, trigger="interval", id="sweep", replace_existing=True, minutes=30
        )
