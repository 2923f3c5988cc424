"""
Dataset response schemas for API endpoints.

Catalog rows are written by discovery and metadata sync only, so there is
no Create/Update schema here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from portal_catalog.schemas.enums import SyncStatus

__all__ = [
    "DatasetRead",
    "DatasetStats",
]


class DatasetRead(BaseModel):
    """Schema for dataset API responses."""

    model_config = ConfigDict(from_attributes=True)

    uuid: UUID = Field(description="Unique public identifier")
    external_id: str = Field(description="Portal dataset identifier")
    name: str = Field(description="Default display name")
    name_localized: str | None = Field(description="Localized display name")
    description: str | None = Field(description="Dataset description")
    description_localized: str | None = Field(description="Localized description")
    category: str = Field(description="Category label")
    source: str | None = Field(description="Publishing organization")
    source_url: str | None = Field(description="Portal view URL")
    record_count: int = Field(description="Estimated number of records")
    resources: list[dict[str, Any]] = Field(description="Downloadable resources")
    sync_status: SyncStatus = Field(description="Metadata sync status")
    last_sync_at: datetime | None = Field(description="Last successful sync")
    sync_error: str | None = Field(description="Last sync error message")
    sync_failures: int = Field(description="Consecutive sync failures")
    extra_data: dict[str, Any] = Field(description="Additional portal metadata")
    created_at: datetime = Field(description="When the dataset was discovered")
    updated_at: datetime = Field(description="Last update timestamp")


class DatasetStats(BaseModel):
    """Aggregate catalog counts."""

    total: int = Field(description="Number of cataloged datasets")
    by_category: dict[str, int] = Field(description="Dataset count per category")
    by_status: dict[str, int] = Field(description="Dataset count per sync status")
