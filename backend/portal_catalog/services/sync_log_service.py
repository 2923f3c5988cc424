"""
SyncLog service for job audit entries.

Sync logs are:
- Immutable (no update/delete)
- Written by discovery and sync jobs
- Queryable by job type, status and dataset
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.models.base import utc_now
from portal_catalog.models.sync_log import SyncLog
from portal_catalog.schemas.common import PaginationParams
from portal_catalog.schemas.enums import JobType, SyncLogStatus


class SyncLogService:
    """Service for SyncLog read and write operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_list(
        self,
        pagination: PaginationParams,
        job_type: JobType | None = None,
        status: SyncLogStatus | None = None,
        dataset_external_id: str | None = None,
    ) -> tuple[list[SyncLog], int]:
        """Get paginated list of sync logs with filters, newest first."""
        base_query = select(SyncLog)

        if job_type:
            base_query = base_query.where(SyncLog.job_type == job_type)
        if status:
            base_query = base_query.where(SyncLog.status == status)
        if dataset_external_id:
            base_query = base_query.where(SyncLog.dataset_external_id == dataset_external_id)

        # Count total
        count_stmt = select(func.count()).select_from(base_query.subquery())
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        paginated_query = (
            base_query
            .order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )

        result = await self.db.execute(paginated_query)
        items = list(result.scalars().all())

        return items, total

    async def get_latest(self, job_type: JobType) -> SyncLog | None:
        """Most recent entry of one job type."""
        stmt = (
            select(SyncLog)
            .where(SyncLog.job_type == job_type)
            .order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def log_job(
        self,
        job_type: JobType,
        status: SyncLogStatus,
        started_at: datetime | None = None,
        dataset_external_id: str | None = None,
        records_count: int = 0,
        new_records: int = 0,
        error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SyncLog:
        """Create a sync log entry."""
        completed_at = utc_now()
        duration_ms = None
        if started_at is not None:
            duration_ms = int((completed_at - started_at).total_seconds() * 1000)

        log = SyncLog(
            job_type=job_type,
            status=status,
            dataset_external_id=dataset_external_id,
            records_count=records_count,
            new_records=new_records,
            duration_ms=duration_ms,
            error=error,
            details=details or {},
            started_at=started_at,
            completed_at=completed_at,
        )
        self.db.add(log)
        await self.db.commit()
        await self.db.refresh(log)
        return log


def get_sync_log_service(db: AsyncSession) -> SyncLogService:
    """Factory function for SyncLogService."""
    return SyncLogService(db)
