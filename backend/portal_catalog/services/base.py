"""
Base service with common catalog operations.

Provides async methods for:
- paginated listing for subclasses
- save()
- soft_delete()
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.models.base import BaseTableModel
from portal_catalog.schemas.common import PaginationParams

# Type variable for generic service
ModelType = TypeVar("ModelType", bound=BaseTableModel)


class BaseService(Generic[ModelType]):
    """
    Generic base service.

    Usage:
        class DatasetService(BaseService[Dataset]):
            def __init__(self, db: AsyncSession):
                super().__init__(db, Dataset)
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    async def _paginate(self, base_query: Any, pagination: PaginationParams) -> tuple[list[ModelType], int]:
        # Count total
        count_stmt = select(func.count()).select_from(base_query.subquery())
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Apply pagination
        paginated_query = (
            base_query
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )

        result = await self.db.execute(paginated_query)
        items = list(result.scalars().all())

        return items, total

    async def save(self, db_obj: ModelType) -> ModelType:
        """Persist changes to a record."""
        db_obj.touch()
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)

        return db_obj

    async def soft_delete(self, db_obj: ModelType) -> ModelType:
        """Soft delete a record by setting deleted_at."""
        db_obj.soft_delete()
        return await self.save(db_obj)
