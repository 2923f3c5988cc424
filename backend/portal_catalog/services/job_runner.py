"""
In-process job runner.

Tracks named long-running jobs (discovery, metadata sync, cache refresh) and
refuses to start a job whose name is already running. Admin triggers, the
scheduler and the CLI all go through one runner per process.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from portal_catalog.models.base import utc_now
from portal_catalog.schemas.jobs import JobStatus
from portal_catalog.services.exceptions import JobAlreadyRunningError

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]

DISCOVERY_JOB = "discovery"
METADATA_SYNC_JOB = "metadata_sync"


def dataset_sync_job(external_id: str) -> str:
    return f"metadata_sync:{external_id.strip().lower()}"


def cache_refresh_job(external_id: str) -> str:
    return f"cache_refresh:{external_id.strip().lower()}"


def _result_payload(result: Any) -> dict[str, Any] | None:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, dict):
        return result
    return None


class JobRunner:
    """
    Registry of named jobs with at-most-one-running semantics per name.

    Usage:
        runner = get_job_runner()
        status = runner.start_background("discovery", job)   # raises if running
        result = await runner.run("metadata_sync:abc", job)  # waits for the result
    """

    def __init__(self):
        self._jobs: dict[str, JobStatus] = {}
        self._tasks: set[asyncio.Task] = set()

    def status(self, name: str) -> JobStatus:
        return self._jobs.get(name) or JobStatus(name=name)

    def all_statuses(self) -> list[JobStatus]:
        return [self._jobs[name] for name in sorted(self._jobs)]

    def is_running(self, name: str) -> bool:
        job = self._jobs.get(name)
        return job is not None and job.running

    def _mark_started(self, name: str) -> JobStatus:
        # Check and set happen without an await in between
        if self.is_running(name):
            raise JobAlreadyRunningError(name)
        job = self._jobs.setdefault(name, JobStatus(name=name))
        job.running = True
        job.started_at = utc_now()
        job.last_error = None
        logger.info(f"Job '{name}' started")
        return job

    def _mark_finished(self, name: str, result: Any = None, error: BaseException | None = None) -> None:
        job = self._jobs[name]
        job.running = False
        job.last_run_at = utc_now()
        if error is not None:
            job.last_error = str(error) or type(error).__name__
            logger.error(f"Job '{name}' failed: {job.last_error}")
        else:
            job.last_result = _result_payload(result)
            logger.info(f"Job '{name}' finished")

    async def run(self, name: str, func: JobFunc) -> Any:
        """Run a job to completion in the caller's task."""
        self._mark_started(name)
        try:
            result = await func()
        except BaseException as e:
            self._mark_finished(name, error=e)
            raise
        self._mark_finished(name, result=result)
        return result

    def start_background(self, name: str, func: JobFunc) -> JobStatus:
        """
        Start a job as a background task and return its status immediately.

        Raises:
            JobAlreadyRunningError: The job is already running
        """
        job = self._mark_started(name)

        async def runner() -> None:
            try:
                result = await func()
            except Exception as e:
                logger.exception(f"Background job '{name}' raised")
                self._mark_finished(name, error=e)
                return
            except asyncio.CancelledError as e:
                self._mark_finished(name, error=e)
                raise
            self._mark_finished(name, result=result)

        task = asyncio.create_task(runner(), name=f"job:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job.model_copy()

    async def wait_idle(self) -> None:
        """Wait for every background job started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel background jobs still running."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()


_runner: JobRunner | None = None


def get_job_runner() -> JobRunner:
    """Process-wide job runner."""
    global _runner
    if _runner is None:
        _runner = JobRunner()
    return _runner
