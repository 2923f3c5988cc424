"""
Tests for the periodic job schedule.
"""

from __future__ import annotations

import asyncio

from portal_catalog.core.config import SchedulerSettings
from portal_catalog.services.job_runner import DISCOVERY_JOB, JobRunner
from portal_catalog.services.jobs import JobContext
from portal_catalog.services.scheduler import JOB_DEFAULTS, _guarded, build_scheduler


class TestBuildScheduler:
    def test_registers_three_jobs(self, job_runner: JobRunner, job_context: JobContext):
        scheduler = build_scheduler(SchedulerSettings(timezone="UTC"), job_runner, job_context)

        assert sorted(job.id for job in scheduler.get_jobs()) == [
            "full_discovery",
            "metadata_sync",
            "quick_discovery",
        ]

    def test_cron_expressions_applied(self, job_runner: JobRunner, job_context: JobContext):
        settings = SchedulerSettings(timezone="UTC", metadata_sync_cron="15 2 * * *")
        scheduler = build_scheduler(settings, job_runner, job_context)

        trigger = scheduler.get_job("metadata_sync").trigger
        fields = {f.name: str(f) for f in trigger.fields}
        assert fields["minute"] == "15"
        assert fields["hour"] == "2"

    def test_job_defaults(self):
        assert JOB_DEFAULTS["max_instances"] == 1
        assert JOB_DEFAULTS["coalesce"] is True


class TestGuarded:
    async def test_overlapping_run_is_skipped(self, job_runner: JobRunner):
        release = asyncio.Event()
        calls = []

        async def slow():
            calls.append("manual")
            await release.wait()

        async def scheduled_job():
            calls.append("scheduled")

        job_runner.start_background(DISCOVERY_JOB, slow)
        await asyncio.sleep(0)

        # Does not raise and does not run
        await _guarded(job_runner, DISCOVERY_JOB, scheduled_job)()
        assert calls == ["manual"]

        release.set()
        await job_runner.wait_idle()

        await _guarded(job_runner, DISCOVERY_JOB, scheduled_job)()
        assert calls == ["manual", "scheduled"]

    async def test_failure_is_logged_not_raised(self, job_runner: JobRunner):
        async def broken():
            raise RuntimeError("portal down")

        await _guarded(job_runner, "metadata_sync", broken)()

        assert job_runner.status("metadata_sync").last_error == "portal down"
