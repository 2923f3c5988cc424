"""
Dataset service - the catalog read contract plus the lookups used by
discovery and metadata sync.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.models.dataset import Dataset
from portal_catalog.schemas.common import PaginationParams
from portal_catalog.schemas.dataset import DatasetStats
from portal_catalog.schemas.enums import SyncStatus
from portal_catalog.services.base import BaseService
from portal_catalog.services.exceptions import NotFoundError

# Bound on identifiers per IN (...) clause
LOOKUP_CHUNK_SIZE = 500


class DatasetService(BaseService[Dataset]):
    """Service for catalog Dataset queries."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Dataset)

    async def get_by_external_id(self, external_id: str) -> Dataset | None:
        """Get dataset by its portal identifier."""
        stmt = select(Dataset).where(
            Dataset.external_id == external_id.strip().lower(),
            Dataset.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_id_or_404(self, external_id: str) -> Dataset:
        dataset = await self.get_by_external_id(external_id)
        if dataset is None:
            raise NotFoundError("Dataset", external_id)
        return dataset

    async def get_list_filtered(
        self,
        pagination: PaginationParams,
        category: str | None = None,
        sync_status: SyncStatus | None = None,
        search: str | None = None,
    ) -> tuple[list[Dataset], int]:
        """Get datasets with optional filters including search."""
        base_query = select(Dataset).where(Dataset.deleted_at.is_(None))

        if category:
            base_query = base_query.where(Dataset.category == category)
        if sync_status:
            base_query = base_query.where(Dataset.sync_status == sync_status)

        # Apply search filter (ILIKE on both names and description)
        if search:
            search_pattern = f"%{search}%"
            base_query = base_query.where(
                or_(
                    Dataset.name.ilike(search_pattern),
                    Dataset.name_localized.ilike(search_pattern),
                    Dataset.description.ilike(search_pattern),
                    Dataset.external_id == search.strip().lower(),
                )
            )

        return await self._paginate(base_query, pagination)

    async def count_by(self, column) -> dict[str, int]:
        stmt = (
            select(column, func.count())
            .where(Dataset.deleted_at.is_(None))
            .group_by(column)
        )
        result = await self.db.execute(stmt)
        return {str(key): count for key, count in result.all()}

    async def get_stats(self) -> DatasetStats:
        """Counts by category and by sync status."""
        by_category = await self.count_by(Dataset.category)
        by_status = await self.count_by(Dataset.sync_status)
        return DatasetStats(
            total=sum(by_status.values()),
            by_category=dict(sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)),
            by_status={status.value: by_status.get(status.value, 0) for status in SyncStatus},
        )

    async def get_existing_external_ids(self, external_ids: Iterable[str]) -> set[str]:
        """
        Subset of external_ids already cataloged.

        Soft-deleted rows count as existing so removed datasets are not re-admitted.
        """
        ids = list(external_ids)
        existing: set[str] = set()
        for start in range(0, len(ids), LOOKUP_CHUNK_SIZE):
            chunk = ids[start:start + LOOKUP_CHUNK_SIZE]
            result = await self.db.execute(
                select(Dataset.external_id).where(Dataset.external_id.in_(chunk))
            )
            existing.update(result.scalars().all())
        return existing

    async def get_all_in_creation_order(self) -> list[Dataset]:
        """Every active dataset, oldest first."""
        stmt = (
            select(Dataset)
            .where(Dataset.deleted_at.is_(None))
            .order_by(Dataset.created_at.asc(), Dataset.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


def get_dataset_service(db: AsyncSession) -> DatasetService:
    """Factory function for DatasetService."""
    return DatasetService(db)
