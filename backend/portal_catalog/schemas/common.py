"""
Common Pydantic schemas shared across the application.

Provides:
- Pagination schemas (request params and response wrapper)
- Error response schemas
- Health check schemas
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "PaginationParams",
    "PaginatedResponse",
    "HealthResponse",
]

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Query parameters for paginated endpoints."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Items per page (max 100)",
    )

    @property
    def offset(self) -> int:
        """Calculate SQL OFFSET from page number."""
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response wrapper.

    Usage:
        @router.get("", response_model=PaginatedResponse[DatasetRead])
        async def list_datasets(...):
            return PaginatedResponse[DatasetRead](
                items=datasets,
                total=total_count,
                page=pagination.page,
                page_size=pagination.page_size,
                has_more=pagination.page * pagination.page_size < total_count,
            )
    """

    items: list[T]
    total: int = Field(description="Total number of items across all pages")
    page: int = Field(description="Current page number")
    page_size: int = Field(description="Items per page")
    has_more: bool = Field(default=False, description="Whether another page exists")

    @property
    def pages(self) -> int:
        """Calculate total number of pages."""
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "items": [],
                "total": 100,
                "page": 1,
                "page_size": 20,
                "has_more": True,
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Health status")
    app: str = Field(description="Application name")
    version: str | None = Field(default=None, description="Application version")
