"""
Administrative trigger endpoints.

- POST /admin/discovery - Start a discovery pass (quick or full) in the background
- POST /admin/discovery/add - Admit identifiers supplied by hand
- GET /admin/discovery/stats - Catalog counts plus the last discovery run
- POST /admin/sync - Start a metadata sync of every dataset in the background
- POST /admin/sync/{external_id} - Sync one dataset's metadata
- POST /admin/datasets/{external_id}/refresh - Drop and re-fetch one dataset's cached data
- GET /admin/jobs - Running state of every job

A trigger whose job is already running is refused with 409.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from portal_catalog.api.deps import DbSession, ExternalId, Jobs, Portal, Runner
from portal_catalog.schemas.data import DatasetData
from portal_catalog.schemas.enums import DiscoveryMode
from portal_catalog.schemas.jobs import (
    DiscoveryStats,
    JobStatus,
    ManualAddRequest,
    ManualAddResult,
    SyncResult,
)
from portal_catalog.services.dataset_service import DatasetService
from portal_catalog.services.discovery_service import DiscoveryService
from portal_catalog.services.job_runner import (
    DISCOVERY_JOB,
    METADATA_SYNC_JOB,
    cache_refresh_job,
    dataset_sync_job,
)
from portal_catalog.services.jobs import (
    run_discovery_job,
    run_refresh_job,
    run_sync_all_job,
    run_sync_one_job,
)

router = APIRouter()


@router.post("/discovery", response_model=JobStatus, status_code=status.HTTP_202_ACCEPTED)
async def trigger_discovery(
    runner: Runner,
    jobs: Jobs,
    mode: DiscoveryMode = Query(default=DiscoveryMode.QUICK, description="quick or full scan"),
):
    """Start discovery plus admission of new identifiers."""
    full_scan = mode == DiscoveryMode.FULL
    return runner.start_background(DISCOVERY_JOB, lambda: run_discovery_job(jobs, full_scan=full_scan))


@router.post("/discovery/add", response_model=ManualAddResult)
async def add_datasets(db: DbSession, client: Portal, data: ManualAddRequest):
    """Admit identifiers that discovery missed. Known and invalid identifiers are ignored."""
    return await DiscoveryService(db, client).add_manual(data.ids)


@router.get("/discovery/stats", response_model=DiscoveryStats)
async def get_discovery_stats(db: DbSession):
    """Catalog counts by sync status plus the most recent discovery run."""
    return await DiscoveryService(db).get_stats()


@router.post("/sync", response_model=JobStatus, status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync_all(runner: Runner, jobs: Jobs):
    """Start a metadata sync pass over the catalog."""
    return runner.start_background(METADATA_SYNC_JOB, lambda: run_sync_all_job(jobs))


@router.post("/sync/{external_id}", response_model=SyncResult)
async def trigger_sync_one(db: DbSession, runner: Runner, jobs: Jobs, external_id: ExternalId):
    """Sync one dataset's metadata and wait for the result."""
    await DatasetService(db).get_by_external_id_or_404(external_id)
    return await runner.run(dataset_sync_job(external_id), lambda: run_sync_one_job(jobs, external_id))


@router.post("/datasets/{external_id}/refresh", response_model=DatasetData)
async def refresh_dataset(runner: Runner, jobs: Jobs, external_id: ExternalId):
    """Drop cached entries of one dataset and fetch its records again."""
    return await runner.run(cache_refresh_job(external_id), lambda: run_refresh_job(jobs, external_id))


@router.get("/jobs", response_model=list[JobStatus])
async def list_jobs(runner: Runner):
    """Running state and last outcome of every job started in this process."""
    return runner.all_statuses()
