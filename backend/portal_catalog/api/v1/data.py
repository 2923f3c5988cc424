"""
Batched data API endpoint.

- POST /data/batch - Records for several datasets at once
"""

from __future__ import annotations

from fastapi import APIRouter

from portal_catalog.api.deps import Cache, DbSession, Portal
from portal_catalog.schemas.data import BatchDataRequest, BatchDataResponse
from portal_catalog.services.data_service import DataService

router = APIRouter()


@router.post("/batch", response_model=BatchDataResponse)
async def get_batch_data(
    db: DbSession,
    client: Portal,
    cache: Cache,
    data: BatchDataRequest,
):
    """
    Records for several datasets.

    Uncached datasets are fetched concurrently with a bounded number of
    requests in flight. Each result is independent; failures come back as
    unavailable entries.
    """
    results = await DataService(db, client, cache).get_many(data.ids, limit=data.limit)
    return BatchDataResponse(
        results=results,
        available=sum(1 for result in results.values() if result.available),
    )
