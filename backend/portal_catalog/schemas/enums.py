"""
Enum definitions for the Portal Catalog application.

All enums are defined as StrEnum for JSON serialization compatibility.
Database stores these as VARCHAR - validation happens at Pydantic/FastAPI layer.
"""

from enum import StrEnum

__all__ = [
    "SyncStatus",
    "SyncLogStatus",
    "JobType",
    "CachePurpose",
    "DataSource",
    "DiscoveryMode",
]


class SyncStatus(StrEnum):
    """
    Metadata sync state of a cataloged dataset.

    State machine:
    PENDING -> SYNCING -> SUCCESS
                       -> FAILED (eligible again after cooldown) -> SYNCING
    """

    PENDING = "PENDING"
    SYNCING = "SYNCING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class SyncLogStatus(StrEnum):
    """Outcome of one logged job run."""

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class JobType(StrEnum):
    """Background and administrative job kinds."""

    DISCOVERY = "discovery"
    METADATA_SYNC = "metadata_sync"
    METADATA_SYNC_ALL = "metadata_sync_all"
    CACHE_REFRESH = "cache_refresh"


class CachePurpose(StrEnum):
    """Cache key namespaces, each with its own TTL."""

    DATA = "data"
    METADATA = "metadata"
    LISTING_PAGE = "listing-page"


class DataSource(StrEnum):
    """Where an on-demand data result came from."""

    CACHE = "cache"
    API = "api"


class DiscoveryMode(StrEnum):
    """Discovery scan depth."""

    QUICK = "quick"
    FULL = "full"
