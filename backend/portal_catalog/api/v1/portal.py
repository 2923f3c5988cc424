"""
Upstream portal listing endpoint.

- GET /portal/datasets - One page of the portal's own search listing (cached)
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from portal_catalog.api.deps import Cache, DbSession, Portal
from portal_catalog.schemas.data import PortalListing
from portal_catalog.services.data_service import DataService

router = APIRouter()


@router.get("/datasets", response_model=PortalListing)
async def list_portal_datasets(
    db: DbSession,
    client: Portal,
    cache: Cache,
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(default=20, ge=1, le=100, description="Items per page"),
    search: str | None = Query(default=None, description="Full-text query passed to the portal"),
    category: str | None = Query(default=None, description="Portal category (group) name"),
    force_refresh: bool = Query(default=False, description="Bypass the listing cache"),
):
    """Browse the portal listing without touching the catalog."""
    service = DataService(db, client, cache)
    return await service.list_portal_datasets(
        page=page,
        limit=limit,
        search=search,
        category=category,
        force_refresh=force_refresh,
    )
