"""
Discovery and sync job schemas.

Results of administrative triggers, job status and discovery statistics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from portal_catalog.schemas.enums import SyncStatus
from portal_catalog.schemas.sync_log import SyncLogRead

__all__ = [
    "DiscoveryResult",
    "DiscoveryRunResult",
    "ManualAddRequest",
    "ManualAddResult",
    "SyncResult",
    "SyncAllResult",
    "JobStatus",
    "DiscoveryStats",
]


class DiscoveryResult(BaseModel):
    """Identifier union of one discovery pass, split into known and new."""

    total: int = Field(description="Identifiers found by all strategies")
    known: int = Field(description="Identifiers already in the catalog")
    new_ids: list[str] = Field(default_factory=list)
    all_ids: list[str] = Field(default_factory=list, exclude=True)
    strategies: dict[str, int] = Field(
        default_factory=dict,
        description="Identifiers contributed per strategy (before union)",
    )
    failed_strategies: list[str] = Field(default_factory=list)
    full_scan: bool = False
    duration_seconds: float = 0.0


class DiscoveryRunResult(BaseModel):
    """Discovery followed by admission of the new identifiers."""

    discovery: DiscoveryResult
    added: int = Field(description="Placeholder rows created")


class ManualAddRequest(BaseModel):
    """Identifiers supplied by an administrator."""

    ids: list[str] = Field(min_length=1, max_length=1000)


class ManualAddResult(BaseModel):
    """Outcome of a manual admission."""

    requested: int
    valid: int
    added: int


class SyncResult(BaseModel):
    """Outcome of syncing one dataset's metadata."""

    external_id: str
    status: SyncStatus
    name: str | None = None
    category: str | None = None
    estimated_record_count: int | None = None
    error: str | None = None


class SyncAllResult(BaseModel):
    """Summary of a full metadata sync pass."""

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0


class JobStatus(BaseModel):
    """Running state of one named job."""

    name: str
    running: bool = False
    started_at: datetime | None = None
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_result: dict[str, Any] | None = None


class DiscoveryStats(BaseModel):
    """Catalog counts plus the most recent discovery run."""

    total: int
    synced: int
    pending: int
    syncing: int
    failed: int
    last_discovery: SyncLogRead | None = None
