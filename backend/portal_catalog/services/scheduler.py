"""
Periodic discovery and metadata sync.

Cron schedules come from SchedulerSettings. Scheduled runs go through the
job runner like admin triggers do, so a run that overlaps a manual trigger
is skipped instead of duplicated.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from portal_catalog.core.config import SchedulerSettings
from portal_catalog.services.exceptions import JobAlreadyRunningError
from portal_catalog.services.job_runner import DISCOVERY_JOB, METADATA_SYNC_JOB, JobRunner
from portal_catalog.services.jobs import JobContext, run_discovery_job, run_sync_all_job

logger = logging.getLogger(__name__)

JOB_DEFAULTS = {"coalesce": True, "max_instances": 1, "misfire_grace_time": 300}


def _guarded(runner: JobRunner, name: str, func: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[None]]:
    async def scheduled() -> None:
        try:
            await runner.run(name, func)
        except JobAlreadyRunningError:
            logger.info(f"Scheduled '{name}' skipped: already running")
        except Exception:
            logger.exception(f"Scheduled '{name}' failed")

    return scheduled


def build_scheduler(settings: SchedulerSettings, runner: JobRunner, context: JobContext) -> AsyncIOScheduler:
    """Scheduler with the quick discovery, full discovery and metadata sync jobs registered."""
    scheduler = AsyncIOScheduler(job_defaults=JOB_DEFAULTS, timezone=settings.timezone)

    jobs = [
        (
            "quick_discovery",
            settings.quick_discovery_cron,
            _guarded(runner, DISCOVERY_JOB, lambda: run_discovery_job(context, full_scan=False)),
        ),
        (
            "full_discovery",
            settings.full_discovery_cron,
            _guarded(runner, DISCOVERY_JOB, lambda: run_discovery_job(context, full_scan=True)),
        ),
        (
            "metadata_sync",
            settings.metadata_sync_cron,
            _guarded(runner, METADATA_SYNC_JOB, lambda: run_sync_all_job(context)),
        ),
    ]
    for job_id, expression, func in jobs:
        trigger = CronTrigger.from_crontab(expression, timezone=settings.timezone)
        scheduler.add_job(func, trigger, id=job_id, name=job_id, replace_existing=True)
        logger.info(f"Scheduled '{job_id}' with cron '{expression}' ({settings.timezone})")

    return scheduler
