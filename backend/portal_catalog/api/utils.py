"""
Common utilities for API routes.

Provides helper functions to reduce boilerplate in route handlers.
"""

from __future__ import annotations

from typing import TypeVar

from portal_catalog.schemas.common import PaginatedResponse, PaginationParams

T = TypeVar("T")


def paginated(items: list[T], total: int, pagination: PaginationParams) -> PaginatedResponse[T]:
    """
    Wrap one page of results.

    Usage:
        items, total = await service.get_list_filtered(pagination)
        return paginated([DatasetRead.model_validate(i) for i in items], total, pagination)
    """
    return PaginatedResponse[T](
        items=items,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        has_more=(pagination.page * pagination.page_size) < total,
    )
