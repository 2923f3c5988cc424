"""
API dependencies for FastAPI route handlers.

Provides:
- Database session dependency
- Pagination parameter dependency
- Cache, portal client and job runner dependencies
- Job context (factories background jobs open their own resources with)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.database import get_db
from portal_catalog.schemas.common import PaginationParams
from portal_catalog.services.cache import PortalCache, get_cache
from portal_catalog.services.job_runner import JobRunner, get_job_runner
from portal_catalog.services.jobs import JobContext
from portal_catalog.services.portal_client import PortalClient

__all__ = [
    "DbSession",
    "Pagination",
    "ExternalId",
    "Cache",
    "Portal",
    "Runner",
    "Jobs",
    "get_pagination",
    "get_portal",
    "get_job_context",
]


# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(
        default=20,
        ge=1,
        le=100,
        description="Items per page (max 100)",
    ),
) -> PaginationParams:
    """Dependency for pagination parameters."""
    return PaginationParams(page=page, page_size=page_size)


# Type alias for pagination dependency
Pagination = Annotated[PaginationParams, Depends(get_pagination)]

ExternalId = Annotated[
    str,
    Path(
        min_length=1,
        max_length=64,
        description="Portal dataset identifier",
        examples=["3f1c2a9e-8b7d-4e6f-9a1b-2c3d4e5f6a7b"],
    ),
]


async def get_portal() -> AsyncGenerator[PortalClient, None]:
    """Dependency that provides a portal client closed after the request."""
    async with PortalClient() as client:
        yield client


def get_job_context() -> JobContext:
    """Dependency for the factories background jobs use."""
    return JobContext()


Cache = Annotated[PortalCache, Depends(get_cache)]
Portal = Annotated[PortalClient, Depends(get_portal)]
Runner = Annotated[JobRunner, Depends(get_job_runner)]
Jobs = Annotated[JobContext, Depends(get_job_context)]
