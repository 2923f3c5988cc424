"""
Dataset API endpoints.

Catalog reads and on-demand data access:
- GET /datasets - List cataloged datasets (paginated, filterable)
- GET /datasets/stats - Counts by category and sync status
- GET /datasets/{external_id} - Get dataset
- DELETE /datasets/{external_id} - Soft delete dataset
- GET /datasets/{external_id}/data - Records (cache-aside, sliced)
- GET /datasets/{external_id}/preview - First records
- GET /datasets/{external_id}/data/stats - Cached record set size
- DELETE /datasets/{external_id}/cache - Drop cached entries
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from portal_catalog.api.deps import Cache, DbSession, ExternalId, Pagination, Portal
from portal_catalog.api.utils import paginated
from portal_catalog.schemas.common import PaginatedResponse
from portal_catalog.schemas.data import DatasetData, DataStats
from portal_catalog.schemas.dataset import DatasetRead, DatasetStats
from portal_catalog.schemas.enums import SyncStatus
from portal_catalog.services.data_service import DataService
from portal_catalog.services.dataset_service import DatasetService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[DatasetRead])
async def list_datasets(
    db: DbSession,
    pagination: Pagination,
    category: str | None = Query(
        default=None,
        description="Filter datasets by category label",
        examples=["المساحة والخرائط"],
    ),
    sync_status: SyncStatus | None = Query(
        default=None,
        description="Filter datasets by metadata sync status",
        examples=["FAILED"],
    ),
    search: str | None = Query(
        default=None,
        description="Search in dataset names and description",
        examples=["population"],
    ),
):
    """List cataloged datasets with pagination and optional filters."""
    service = DatasetService(db)
    items, total = await service.get_list_filtered(
        pagination=pagination,
        category=category,
        sync_status=sync_status,
        search=search,
    )
    return paginated([DatasetRead.model_validate(item) for item in items], total, pagination)


@router.get("/stats", response_model=DatasetStats)
async def get_dataset_stats(db: DbSession):
    """Catalog counts by category and by sync status."""
    return await DatasetService(db).get_stats()


@router.get("/{external_id}", response_model=DatasetRead)
async def get_dataset(db: DbSession, external_id: ExternalId):
    """Get a single dataset by its portal identifier."""
    dataset = await DatasetService(db).get_by_external_id_or_404(external_id)
    return DatasetRead.model_validate(dataset)


@router.delete("/{external_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dataset(db: DbSession, external_id: ExternalId):
    """Soft delete a dataset. Discovery does not re-admit it."""
    service = DatasetService(db)
    dataset = await service.get_by_external_id_or_404(external_id)
    await service.soft_delete(dataset)
    return None


@router.get("/{external_id}/data", response_model=DatasetData)
async def get_dataset_data(
    db: DbSession,
    client: Portal,
    cache: Cache,
    external_id: ExternalId,
    limit: int | None = Query(default=None, ge=1, le=10000, description="Maximum records to return"),
    offset: int = Query(default=0, ge=0, description="Records to skip"),
    force_refresh: bool = Query(default=False, description="Bypass the cache and fetch from the portal"),
):
    """
    Records of one dataset.

    Served from the cache when present; otherwise fetched from the portal and
    cached. An unavailable result has `available=false` and a message.
    """
    service = DataService(db, client, cache)
    return await service.get_data(external_id, limit=limit, offset=offset, force_refresh=force_refresh)


@router.get("/{external_id}/preview", response_model=DatasetData)
async def get_dataset_preview(
    db: DbSession,
    client: Portal,
    cache: Cache,
    external_id: ExternalId,
    n: int | None = Query(default=None, ge=1, le=100, description="Number of records"),
):
    """First records of one dataset."""
    return await DataService(db, client, cache).get_preview(external_id, n)


@router.get("/{external_id}/data/stats", response_model=DataStats)
async def get_dataset_data_stats(db: DbSession, cache: Cache, external_id: ExternalId):
    """Size of the cached record set; never triggers a fetch."""
    return await DataService(db, cache=cache).get_stats(external_id)


@router.delete("/{external_id}/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_dataset_cache(db: DbSession, cache: Cache, external_id: ExternalId):
    """Drop the cached data and metadata of one dataset."""
    await DataService(db, cache=cache).clear_cache(external_id)
    return None
