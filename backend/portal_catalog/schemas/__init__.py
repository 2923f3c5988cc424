"""
Pydantic schemas for request/response validation.

Re-exports the most used schemas for convenient importing:
    from portal_catalog.schemas import DatasetRead, SyncStatus
"""

# Common schemas
from portal_catalog.schemas.common import (
    HealthResponse,
    PaginatedResponse,
    PaginationParams,
)

# Enums
from portal_catalog.schemas.enums import (
    CachePurpose,
    DataSource,
    DiscoveryMode,
    JobType,
    SyncLogStatus,
    SyncStatus,
)

# Entity schemas
from portal_catalog.schemas.dataset import DatasetRead, DatasetStats
from portal_catalog.schemas.sync_log import SyncLogRead
from portal_catalog.schemas.data import DatasetData, DataStats, PortalListing
from portal_catalog.schemas.jobs import (
    DiscoveryResult,
    DiscoveryStats,
    JobStatus,
    SyncAllResult,
    SyncResult,
)

__all__ = [
    # Common
    "HealthResponse",
    "PaginatedResponse",
    "PaginationParams",
    # Enums
    "CachePurpose",
    "DataSource",
    "DiscoveryMode",
    "JobType",
    "SyncLogStatus",
    "SyncStatus",
    # Catalog
    "DatasetRead",
    "DatasetStats",
    "SyncLogRead",
    # Data
    "DatasetData",
    "DataStats",
    "PortalListing",
    # Jobs
    "DiscoveryResult",
    "DiscoveryStats",
    "JobStatus",
    "SyncAllResult",
    "SyncResult",
]
