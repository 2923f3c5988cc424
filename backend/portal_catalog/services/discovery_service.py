"""
Discovery service.

Runs the ordered discovery strategies against the portal, diffs the union
with the catalog and admits new identifiers as placeholder datasets.

Re-running discovery is always safe: only identifiers that are not yet in
the catalog cause writes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.core.config import Settings, get_settings
from portal_catalog.models.base import utc_now
from portal_catalog.models.dataset import PLACEHOLDER_CATEGORY, Dataset
from portal_catalog.schemas.enums import JobType, SyncLogStatus, SyncStatus
from portal_catalog.schemas.jobs import (
    DiscoveryResult,
    DiscoveryRunResult,
    DiscoveryStats,
    ManualAddResult,
)
from portal_catalog.schemas.sync_log import SyncLogRead
from portal_catalog.services.browser_session import BrowserSession, BrowserUnavailableError
from portal_catalog.services.dataset_service import DatasetService
from portal_catalog.services.discovery_strategies import (
    DEFAULT_STRATEGIES,
    DiscoveryContext,
    DiscoveryStrategy,
    PageSession,
)
from portal_catalog.services.identifiers import is_valid_identifier
from portal_catalog.services.portal_client import PortalClient, PortalMetadata, PortalServiceError
from portal_catalog.services.sync_log_service import SyncLogService

logger = logging.getLogger(__name__)

NETWORK_CAPTURE = "network_capture"

BrowserFactory = Callable[[], Any]


def placeholder_name(external_id: str) -> str:
    return f"Dataset {external_id[:8]}"


def placeholder_name_localized(external_id: str) -> str:
    return f"مجموعة بيانات {external_id[:8]}"


@dataclass
class DiscoveryOutcome:
    """Identifier union of one pass plus per-strategy bookkeeping."""

    ids: set[str] = field(default_factory=set)
    per_strategy: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class DiscoveryService:
    """
    Service for finding portal dataset identifiers and admitting new ones.

    Usage:
        async with PortalClient() as client:
            service = DiscoveryService(db, client)
            result = await service.run(full_scan=False)
    """

    def __init__(
        self,
        db: AsyncSession,
        client: PortalClient | None = None,
        settings: Settings | None = None,
        strategies: Sequence[DiscoveryStrategy] = DEFAULT_STRATEGIES,
        browser_factory: BrowserFactory | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.client = client or PortalClient(self.settings.portal)
        self.strategies = tuple(strategies)
        self.browser_factory = browser_factory or self._default_browser_factory
        self.datasets = DatasetService(db)
        self.sync_logs = SyncLogService(db)
        self.last_outcome: DiscoveryOutcome | None = None

    def _default_browser_factory(self) -> BrowserSession | None:
        if not self.settings.browser.is_configured:
            return None
        return BrowserSession(self.settings.browser, self.settings.portal)

    def _selected(self, full_scan: bool) -> list[DiscoveryStrategy]:
        return [s for s in self.strategies if full_scan or not s.full_scan_only]

    async def _open_browser(self, stack: AsyncExitStack) -> PageSession | None:
        browser = self.browser_factory()
        if browser is None:
            logger.warning(
                "Browser automation not configured (BROWSER_WS_ENDPOINT / BROWSER_LAUNCH_LOCAL); "
                "skipping browser strategies"
            )
            return None
        try:
            return await stack.enter_async_context(browser)
        except BrowserUnavailableError as e:
            logger.error(f"Browser unavailable, skipping browser strategies: {e}")
            return None

    async def _run_strategies(self, full_scan: bool) -> DiscoveryOutcome:
        outcome = DiscoveryOutcome()
        selected = self._selected(full_scan)

        async with AsyncExitStack() as stack:
            browser = None
            if any(s.needs_browser for s in selected):
                browser = await self._open_browser(stack)

            context = DiscoveryContext(
                full_scan=full_scan,
                client=self.client,
                settings=self.settings.discovery,
                portal=self.settings.portal,
                browser=browser,
            )

            for strategy in selected:
                if strategy.needs_browser and browser is None:
                    outcome.skipped.append(strategy.name)
                    continue

                logger.info(f"Discovery strategy '{strategy.name}' starting")
                try:
                    ids = await strategy.run(context)
                except Exception as e:
                    logger.warning(f"Discovery strategy '{strategy.name}' failed: {e}")
                    outcome.failed.append(strategy.name)
                    continue

                new_count = len(ids - outcome.ids)
                outcome.ids |= ids
                outcome.per_strategy[strategy.name] = len(ids)
                logger.info(
                    f"Discovery strategy '{strategy.name}' found {len(ids)} identifiers "
                    f"({new_count} not seen earlier in this pass, {len(outcome.ids)} total)"
                )

            # Responses captured while later strategies were navigating
            if browser is not None:
                late = await browser.drain_captured_ids()
                if late:
                    outcome.ids |= late
                    outcome.per_strategy[NETWORK_CAPTURE] = outcome.per_strategy.get(NETWORK_CAPTURE, 0) + len(late)

        return outcome

    async def discover(self, full_scan: bool = False) -> set[str]:
        """Union of every applicable strategy's identifiers."""
        mode = "full" if full_scan else "quick"
        logger.info(f"Starting {mode} discovery pass")
        outcome = await self._run_strategies(full_scan)
        self.last_outcome = outcome
        logger.info(
            f"Discovery pass finished: {len(outcome.ids)} identifiers, "
            f"failed={outcome.failed}, skipped={outcome.skipped}"
        )
        return outcome.ids

    async def find_new_datasets(self, full_scan: bool = False) -> DiscoveryResult:
        """Discover and split the result into known and new identifiers."""
        started_at = utc_now()
        started = time.monotonic()

        all_ids = await self.discover(full_scan)
        outcome = self.last_outcome or DiscoveryOutcome(ids=all_ids)
        known = await self.datasets.get_existing_external_ids(all_ids)
        new_ids = sorted(all_ids - known)

        result = DiscoveryResult(
            total=len(all_ids),
            known=len(known),
            new_ids=new_ids,
            all_ids=sorted(all_ids),
            strategies=outcome.per_strategy,
            failed_strategies=outcome.failed,
            full_scan=full_scan,
            duration_seconds=round(time.monotonic() - started, 2),
        )

        if outcome.failed or outcome.skipped:
            status = SyncLogStatus.PARTIAL
        else:
            status = SyncLogStatus.SUCCESS
        if not all_ids and outcome.failed:
            status = SyncLogStatus.FAILED

        await self.sync_logs.log_job(
            JobType.DISCOVERY,
            status,
            started_at=started_at,
            records_count=result.total,
            new_records=len(new_ids),
            details={
                "mode": "full" if full_scan else "quick",
                "known": result.known,
                "strategies": result.strategies,
                "failed_strategies": outcome.failed,
                "skipped_strategies": outcome.skipped,
                "new_ids_sample": new_ids[: self.settings.discovery.new_ids_sample_size],
            },
        )

        logger.info(f"Discovery: {result.total} found, {result.known} known, {len(new_ids)} new")
        return result

    async def _lookup_metadata(self, external_id: str) -> PortalMetadata | None:
        try:
            return await self.client.get_dataset_metadata(external_id)
        except PortalServiceError as e:
            logger.warning(f"Metadata lookup failed for new dataset {external_id}: {e}")
            return None

    def _build_placeholder(self, external_id: str, metadata: PortalMetadata | None) -> Dataset:
        dataset = Dataset(
            external_id=external_id,
            name=placeholder_name(external_id),
            name_localized=placeholder_name_localized(external_id),
            category=PLACEHOLDER_CATEGORY,
            source_url=self.settings.portal.view_url(external_id),
            sync_status=SyncStatus.PENDING,
        )
        if metadata is not None:
            dataset.name = metadata.name or metadata.name_localized or dataset.name
            dataset.name_localized = metadata.name_localized or dataset.name_localized
            dataset.category = metadata.category or dataset.category
        return dataset

    async def add_new_datasets(self, ids: Sequence[str], lookup_metadata: bool = True) -> int:
        """
        Create one PENDING placeholder per identifier not yet cataloged.

        Duplicate and already-known identifiers are ignored. A failed metadata
        lookup never prevents the placeholder from being created.

        Returns:
            Number of rows created
        """
        unique: list[str] = []
        seen: set[str] = set()
        for raw in ids:
            if not is_valid_identifier(raw):
                continue
            external_id = raw.strip().lower()
            if external_id not in seen:
                seen.add(external_id)
                unique.append(external_id)

        existing = await self.datasets.get_existing_external_ids(unique)
        to_create = [i for i in unique if i not in existing]
        if not to_create:
            return 0

        logger.info(f"Adding {len(to_create)} new datasets to the catalog")
        added = 0
        for index, external_id in enumerate(to_create, start=1):
            metadata = await self._lookup_metadata(external_id) if lookup_metadata else None
            self.db.add(self._build_placeholder(external_id, metadata))
            try:
                await self.db.commit()
            except IntegrityError:
                # Admitted concurrently by another writer
                await self.db.rollback()
                logger.debug(f"Dataset {external_id} already exists, skipping")
                continue
            added += 1
            if index % 50 == 0:
                logger.info(f"Admission progress: {index}/{len(to_create)}")

        logger.info(f"Added {added} new datasets")
        return added

    async def add_manual(self, ids: Sequence[str]) -> ManualAddResult:
        """Admit administrator-supplied identifiers."""
        valid = [i for i in ids if is_valid_identifier(i)]
        added = await self.add_new_datasets(valid)
        return ManualAddResult(requested=len(ids), valid=len({i.strip().lower() for i in valid}), added=added)

    async def run(self, full_scan: bool = False, lookup_metadata: bool = True) -> DiscoveryRunResult:
        """Find new identifiers and admit them."""
        discovery = await self.find_new_datasets(full_scan)
        added = await self.add_new_datasets(discovery.new_ids, lookup_metadata=lookup_metadata)
        return DiscoveryRunResult(discovery=discovery, added=added)

    async def get_stats(self) -> DiscoveryStats:
        """Catalog counts by sync status plus the last discovery run."""
        stats = await self.datasets.get_stats()
        last = await self.sync_logs.get_latest(JobType.DISCOVERY)
        return DiscoveryStats(
            total=stats.total,
            synced=stats.by_status.get(SyncStatus.SUCCESS, 0),
            pending=stats.by_status.get(SyncStatus.PENDING, 0),
            syncing=stats.by_status.get(SyncStatus.SYNCING, 0),
            failed=stats.by_status.get(SyncStatus.FAILED, 0),
            last_discovery=SyncLogRead.model_validate(last) if last else None,
        )


def get_discovery_service(db: AsyncSession, client: PortalClient | None = None) -> DiscoveryService:
    """Factory function for DiscoveryService."""
    return DiscoveryService(db, client)
