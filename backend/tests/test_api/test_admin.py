"""
Tests for administrative trigger endpoints.
"""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.models.dataset import Dataset
from portal_catalog.services.job_runner import DISCOVERY_JOB, METADATA_SYNC_JOB, JobRunner, dataset_sync_job
from fakes import FakePortalClient, make_id


@pytest.mark.asyncio
async def test_trigger_discovery(client: AsyncClient, portal: FakePortalClient, job_runner: JobRunner):
    """Test discovery runs in the background and admits new identifiers."""
    portal.package_ids = [make_id(1), make_id(2)]

    response = await client.post("/api/v1/admin/discovery")
    assert response.status_code == 202
    assert response.json()["name"] == DISCOVERY_JOB
    assert response.json()["running"] is True

    await job_runner.wait_idle()

    response = await client.get("/api/v1/datasets")
    assert response.json()["total"] == 2

    status = job_runner.status(DISCOVERY_JOB)
    assert status.last_result["added"] == 2


@pytest.mark.asyncio
async def test_trigger_discovery_while_running(client: AsyncClient, job_runner: JobRunner):
    """Test a duplicate trigger is refused with 409 and not queued."""
    release = asyncio.Event()

    async def slow():
        await release.wait()

    job_runner.start_background(DISCOVERY_JOB, slow)

    response = await client.post("/api/v1/admin/discovery", params={"mode": "full"})
    assert response.status_code == 409
    assert "already running" in response.json()["detail"]

    release.set()
    await job_runner.wait_idle()
    assert job_runner.status(DISCOVERY_JOB).last_result is None


@pytest.mark.asyncio
async def test_trigger_discovery_invalid_mode(client: AsyncClient):
    """Test an unknown mode is rejected."""
    response = await client.post("/api/v1/admin/discovery", params={"mode": "deep"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_add_datasets_manually(client: AsyncClient):
    """Test manual admission ignores invalid and duplicate identifiers."""
    response = await client.post(
        "/api/v1/admin/discovery/add",
        json={"ids": [make_id(1), make_id(1).upper(), "nope"]},
    )
    assert response.status_code == 200
    assert response.json() == {"requested": 3, "valid": 1, "added": 1}

    response = await client.post("/api/v1/admin/discovery/add", json={"ids": [make_id(1)]})
    assert response.json()["added"] == 0


@pytest.mark.asyncio
async def test_discovery_stats(client: AsyncClient, db_session: AsyncSession):
    """Test counts by status."""
    db_session.add(Dataset(external_id=make_id(1), name="x"))
    await db_session.commit()

    response = await client.get("/api/v1/admin/discovery/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["pending"] == 1
    assert data["last_discovery"] is None


@pytest.mark.asyncio
async def test_trigger_sync_all(client: AsyncClient, session_factory, portal: FakePortalClient, job_runner: JobRunner):
    """Test the full metadata sync runs in the background."""
    # Seeded outside the request session so the API reads what the job wrote
    async with session_factory() as db:
        db.add(Dataset(external_id=make_id(1), name="x"))
        await db.commit()
    portal.add_dataset(make_id(1), name="Population", rows=4)

    response = await client.post("/api/v1/admin/sync")
    assert response.status_code == 202

    await job_runner.wait_idle()
    assert job_runner.status(METADATA_SYNC_JOB).last_result["success"] == 1

    response = await client.get(f"/api/v1/datasets/{make_id(1)}")
    assert response.json()["sync_status"] == "SUCCESS"
    assert response.json()["record_count"] == 4


@pytest.mark.asyncio
async def test_trigger_sync_all_while_running(client: AsyncClient, job_runner: JobRunner):
    """Test a second sync trigger is refused."""
    release = asyncio.Event()

    async def slow():
        await release.wait()

    job_runner.start_background(METADATA_SYNC_JOB, slow)
    response = await client.post("/api/v1/admin/sync")
    assert response.status_code == 409

    release.set()


@pytest.mark.asyncio
async def test_sync_one(client: AsyncClient, db_session: AsyncSession, portal: FakePortalClient):
    """Test syncing one dataset waits for the result."""
    db_session.add(Dataset(external_id=make_id(1), name="x"))
    await db_session.commit()
    portal.add_dataset(make_id(1), name="Population", rows=9)

    response = await client.post(f"/api/v1/admin/sync/{make_id(1)}")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "SUCCESS"
    assert data["name"] == "Population"
    assert data["estimated_record_count"] == 9


@pytest.mark.asyncio
async def test_sync_one_failure(client: AsyncClient, db_session: AsyncSession, portal: FakePortalClient):
    """Test a failed sync is reported in the body."""
    db_session.add(Dataset(external_id=make_id(1), name="x"))
    await db_session.commit()
    portal.failing.add(make_id(1))

    response = await client.post(f"/api/v1/admin/sync/{make_id(1)}")
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"


@pytest.mark.asyncio
async def test_sync_one_not_found(client: AsyncClient):
    """Test syncing an uncataloged dataset returns 404."""
    response = await client.post(f"/api/v1/admin/sync/{make_id(404)}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_sync_one_while_running(client: AsyncClient, db_session: AsyncSession, job_runner: JobRunner):
    """Test a per-dataset sync already in progress is refused."""
    db_session.add(Dataset(external_id=make_id(1), name="x"))
    await db_session.commit()
    release = asyncio.Event()

    async def slow():
        await release.wait()

    job_runner.start_background(dataset_sync_job(make_id(1)), slow)
    response = await client.post(f"/api/v1/admin/sync/{make_id(1)}")
    assert response.status_code == 409

    release.set()


@pytest.mark.asyncio
async def test_refresh_dataset(client: AsyncClient, portal: FakePortalClient):
    """Test a refresh drops the cache and fetches again."""
    portal.add_dataset(make_id(1), rows=30)
    await client.get(f"/api/v1/datasets/{make_id(1)}/data")

    response = await client.post(f"/api/v1/admin/datasets/{make_id(1)}/refresh")
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "api"
    assert len(data["records"]) == 10
    assert portal.count("download_text") == 2


@pytest.mark.asyncio
async def test_list_jobs(client: AsyncClient, portal: FakePortalClient, job_runner: JobRunner):
    """Test job statuses are listed after a run."""
    await client.post("/api/v1/admin/discovery")
    await job_runner.wait_idle()

    response = await client.get("/api/v1/admin/jobs")
    assert response.status_code == 200
    jobs = response.json()
    assert [job["name"] for job in jobs] == [DISCOVERY_JOB]
    assert jobs[0]["running"] is False
    assert jobs[0]["last_error"] is None
