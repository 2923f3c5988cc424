"""
Job entry points shared by admin triggers, the scheduler and the CLI.

Each job opens its own database session and portal client, so it can run
after the request that started it has finished.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_catalog.database import async_session_factory
from portal_catalog.schemas.data import DatasetData
from portal_catalog.schemas.jobs import DiscoveryRunResult, SyncAllResult, SyncResult
from portal_catalog.services.cache import PortalCache, get_cache
from portal_catalog.services.data_service import DataService
from portal_catalog.services.discovery_service import DiscoveryService
from portal_catalog.services.metadata_sync_service import MetadataSyncService
from portal_catalog.services.portal_client import PortalClient

SessionFactory = async_sessionmaker[AsyncSession]
ClientFactory = Callable[[], PortalClient]


class JobContext:
    """Factories a job uses to open its own resources."""

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        client_factory: ClientFactory | None = None,
        cache: PortalCache | None = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.client_factory = client_factory or PortalClient
        self._cache = cache

    @property
    def cache(self) -> PortalCache:
        return self._cache or get_cache()


async def run_discovery_job(context: JobContext, full_scan: bool = False) -> DiscoveryRunResult:
    async with context.client_factory() as client, context.session_factory() as db:
        return await DiscoveryService(db, client).run(full_scan=full_scan)


async def run_sync_all_job(context: JobContext) -> SyncAllResult:
    async with context.client_factory() as client, context.session_factory() as db:
        return await MetadataSyncService(db, client, context.cache).sync_all()


async def run_sync_one_job(context: JobContext, external_id: str) -> SyncResult:
    async with context.client_factory() as client, context.session_factory() as db:
        return await MetadataSyncService(db, client, context.cache).sync_metadata(external_id)


async def run_refresh_job(context: JobContext, external_id: str) -> DatasetData:
    async with context.client_factory() as client, context.session_factory() as db:
        return await DataService(db, client, context.cache).refresh(external_id)
