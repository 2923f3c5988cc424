"""
Services package - business logic layer.

Re-exports the service classes for convenient importing.
"""

from portal_catalog.services.base import BaseService
from portal_catalog.services.data_service import DataService
from portal_catalog.services.dataset_service import DatasetService
from portal_catalog.services.discovery_service import DiscoveryService
from portal_catalog.services.metadata_sync_service import MetadataSyncService
from portal_catalog.services.sync_log_service import SyncLogService

__all__ = [
    "BaseService",
    "DataService",
    "DatasetService",
    "DiscoveryService",
    "MetadataSyncService",
    "SyncLogService",
]
