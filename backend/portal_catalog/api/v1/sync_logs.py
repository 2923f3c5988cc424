"""
Sync log API endpoints.

Read-only access to the job audit trail:
- GET /sync-logs - List sync logs (paginated, newest first)
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from portal_catalog.api.deps import DbSession, Pagination
from portal_catalog.api.utils import paginated
from portal_catalog.schemas.common import PaginatedResponse
from portal_catalog.schemas.enums import JobType, SyncLogStatus
from portal_catalog.schemas.sync_log import SyncLogRead
from portal_catalog.services.sync_log_service import SyncLogService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[SyncLogRead])
async def list_sync_logs(
    db: DbSession,
    pagination: Pagination,
    job_type: JobType | None = Query(default=None, description="Filter by job kind"),
    status: SyncLogStatus | None = Query(default=None, description="Filter by run outcome"),
    dataset_id: str | None = Query(default=None, description="Filter by dataset identifier"),
):
    """List discovery and sync runs, newest first."""
    service = SyncLogService(db)
    items, total = await service.get_list(
        pagination=pagination,
        job_type=job_type,
        status=status,
        dataset_external_id=dataset_id.strip().lower() if dataset_id else None,
    )
    return paginated([SyncLogRead.model_validate(item) for item in items], total, pagination)
