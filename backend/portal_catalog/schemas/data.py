"""
On-demand data schemas.

DatasetData is both the API response body and the cached payload: the cache
always holds the full record set, the response holds the requested slice.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from portal_catalog.schemas.enums import DataSource

__all__ = [
    "DatasetData",
    "DataStats",
    "BatchDataRequest",
    "BatchDataResponse",
    "PortalDatasetItem",
    "PortalListing",
]


class DatasetData(BaseModel):
    """Parsed tabular records of one dataset."""

    id: str = Field(description="Portal dataset identifier")
    records: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    total_records: int = Field(default=0, description="Size of the full record set")
    fetched_at: datetime | None = Field(default=None, description="When the upstream fetch happened")
    source: DataSource | None = Field(default=None, description="cache or api; unset when unavailable")
    available: bool = Field(default=True)
    message: str | None = Field(default=None, description="Why data is unavailable")

    @classmethod
    def unavailable(cls, dataset_id: str, message: str) -> DatasetData:
        """Displayable 'no data' result."""
        return cls(id=dataset_id, available=False, message=message)

    def sliced(self, limit: int | None, offset: int = 0) -> DatasetData:
        """Copy holding records[offset:offset + limit]; total_records is unchanged."""
        if limit is None and offset == 0:
            return self.model_copy()
        end = None if limit is None else offset + limit
        return self.model_copy(update={"records": self.records[offset:end]})


class DataStats(BaseModel):
    """Size information served from the cache without an upstream fetch."""

    id: str
    total_records: int = 0
    columns: list[str] = Field(default_factory=list)
    last_fetched: datetime | None = None
    cached: bool = False


class BatchDataRequest(BaseModel):
    """Request body for fetching several datasets at once."""

    ids: list[str] = Field(min_length=1, max_length=50, description="Portal dataset identifiers")
    limit: int | None = Field(default=None, ge=1, le=10000, description="Records per dataset")


class BatchDataResponse(BaseModel):
    """Results keyed by dataset identifier."""

    results: dict[str, DatasetData]
    available: int = Field(description="How many results carry data")


class PortalDatasetItem(BaseModel):
    """One entry of the upstream search listing."""

    id: str
    title: str | None = None
    title_localized: str | None = None
    description: str | None = None
    category: str | None = None
    organization: str | None = None
    resource_count: int = 0
    updated_at: str | None = None


class PortalListing(BaseModel):
    """A page of the upstream search listing."""

    datasets: list[PortalDatasetItem] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    has_more: bool = False
    source: DataSource = DataSource.API
    fetched_at: datetime | None = None
