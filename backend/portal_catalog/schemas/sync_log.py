"""
SyncLog response schemas. Logs are immutable, so only a Read schema exists.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["SyncLogRead"]


class SyncLogRead(BaseModel):
    """Schema for sync log API responses."""

    model_config = ConfigDict(from_attributes=True)

    uuid: UUID = Field(description="Unique public identifier")
    job_type: str = Field(description="Job kind")
    status: str = Field(description="Run outcome")
    dataset_external_id: str | None = Field(description="Dataset the run targeted, if any")
    records_count: int = Field(description="Items processed")
    new_records: int = Field(description="New items found or created")
    duration_ms: int | None = Field(description="Run duration in milliseconds")
    error: str | None = Field(description="Error message on failure")
    details: dict[str, Any] = Field(description="Job-specific details")
    started_at: datetime | None = Field(description="Run start")
    completed_at: datetime | None = Field(description="Run end")
    created_at: datetime = Field(description="When the entry was written")
