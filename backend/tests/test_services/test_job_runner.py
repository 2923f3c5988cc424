"""
Tests for the in-process job runner and the shared job entry points.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from portal_catalog.models.dataset import Dataset
from portal_catalog.schemas.enums import SyncStatus
from portal_catalog.schemas.jobs import SyncAllResult
from portal_catalog.services.exceptions import JobAlreadyRunningError
from portal_catalog.services.job_runner import (
    DISCOVERY_JOB,
    JobRunner,
    cache_refresh_job,
    dataset_sync_job,
)
from portal_catalog.services.jobs import JobContext, run_refresh_job, run_sync_all_job, run_sync_one_job
from fakes import FakePortalClient, make_id


class TestJobNames:
    def test_per_dataset_names(self):
        assert dataset_sync_job(" ABC ") == "metadata_sync:abc"
        assert cache_refresh_job("abc") == "cache_refresh:abc"


class TestJobRunner:
    async def test_run_records_result(self, job_runner: JobRunner):
        async def job():
            return SyncAllResult(total=3, success=3)

        result = await job_runner.run("metadata_sync", job)

        assert result.success == 3
        status = job_runner.status("metadata_sync")
        assert status.running is False
        assert status.last_run_at is not None
        assert status.last_result["total"] == 3

    async def test_run_failure_recorded_and_raised(self, job_runner: JobRunner):
        async def job():
            raise RuntimeError("portal down")

        with pytest.raises(RuntimeError):
            await job_runner.run("discovery", job)

        status = job_runner.status("discovery")
        assert status.running is False
        assert status.last_error == "portal down"

    async def test_duplicate_refused_while_running(self, job_runner: JobRunner):
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return {"done": True}

        started = job_runner.start_background(DISCOVERY_JOB, slow)
        assert started.running is True

        with pytest.raises(JobAlreadyRunningError):
            job_runner.start_background(DISCOVERY_JOB, slow)
        with pytest.raises(JobAlreadyRunningError):
            await job_runner.run(DISCOVERY_JOB, slow)

        release.set()
        await job_runner.wait_idle()

        assert job_runner.is_running(DISCOVERY_JOB) is False
        assert job_runner.status(DISCOVERY_JOB).last_result == {"done": True}

        # Accepted again once the first run has finished
        again = job_runner.start_background(DISCOVERY_JOB, slow)
        assert again.running is True
        await job_runner.wait_idle()

    async def test_different_names_run_concurrently(self, job_runner: JobRunner):
        release = asyncio.Event()

        async def slow():
            await release.wait()

        job_runner.start_background(dataset_sync_job("a"), slow)
        job_runner.start_background(dataset_sync_job("b"), slow)

        assert [s.name for s in job_runner.all_statuses() if s.running] == [
            "metadata_sync:a",
            "metadata_sync:b",
        ]
        release.set()
        await job_runner.wait_idle()

    async def test_background_failure_recorded(self, job_runner: JobRunner):
        async def job():
            raise ValueError("bad payload")

        job_runner.start_background("metadata_sync", job)
        await job_runner.wait_idle()

        assert job_runner.status("metadata_sync").last_error == "bad payload"

    async def test_shutdown_cancels(self, job_runner: JobRunner):
        async def forever():
            await asyncio.Event().wait()

        job_runner.start_background(DISCOVERY_JOB, forever)
        await asyncio.sleep(0)
        await job_runner.shutdown()

        status = job_runner.status(DISCOVERY_JOB)
        assert status.running is False
        assert status.last_error is not None

    def test_unknown_status(self, job_runner: JobRunner):
        status = job_runner.status("never")
        assert status.running is False
        assert status.last_run_at is None


class TestJobEntryPoints:
    async def test_sync_one_uses_own_session(self, job_context: JobContext, session_factory, portal: FakePortalClient):
        external_id = make_id(1)
        portal.add_dataset(external_id)
        async with session_factory() as db:
            db.add(Dataset(external_id=external_id, name="x"))
            await db.commit()

        result = await run_sync_one_job(job_context, external_id)

        assert result.status == SyncStatus.SUCCESS
        async with session_factory() as db:
            dataset = (await db.execute(select(Dataset))).scalar_one()
        assert dataset.sync_status == SyncStatus.SUCCESS

    async def test_sync_all(self, job_context: JobContext, session_factory, portal: FakePortalClient):
        async with session_factory() as db:
            for n in (1, 2):
                db.add(Dataset(external_id=make_id(n), name="x"))
                portal.add_dataset(make_id(n))
            await db.commit()

        summary = await run_sync_all_job(job_context)

        assert summary.success == 2

    async def test_refresh(self, job_context: JobContext, portal: FakePortalClient):
        external_id = make_id(1)
        portal.add_dataset(external_id, rows=4)

        data = await run_refresh_job(job_context, external_id)

        assert data.available is True
        assert data.total_records == 4
