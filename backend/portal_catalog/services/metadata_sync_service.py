"""
Metadata sync service.

Refreshes descriptive metadata and an estimated record count per dataset
without downloading full record sets. A FAILED dataset is retried by
scheduled passes with an exponential cooldown and is parked after
`max_failures` consecutive failures until a manual sync succeeds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.core.config import Settings, SyncSettings, get_settings
from portal_catalog.models.base import as_utc, utc_now
from portal_catalog.models.dataset import Dataset
from portal_catalog.schemas.enums import CachePurpose, JobType, SyncLogStatus, SyncStatus
from portal_catalog.schemas.jobs import SyncAllResult, SyncResult
from portal_catalog.schemas.jsonb_types import DatasetExtraData, select_tabular_resource
from portal_catalog.services.cache import PortalCache, get_cache
from portal_catalog.services.dataset_service import DatasetService
from portal_catalog.services.portal_client import (
    PortalAPIError,
    PortalClient,
    PortalMetadata,
    PortalServiceError,
    RangeSample,
)
from portal_catalog.services.sync_log_service import SyncLogService

logger = logging.getLogger(__name__)


def estimate_record_count(sample: RangeSample) -> int:
    """
    Data rows in a CSV resource from its first chunk.

    A complete body is counted exactly. Otherwise the newline density of the
    chunk is extrapolated to the total length. The header row is excluded.
    """
    if sample.complete:
        lines = [line for line in sample.text.splitlines() if line.strip()]
        return max(0, len(lines) - 1)

    newlines = sample.text.count("\n")
    if newlines == 0 or not sample.chunk_bytes or not sample.total_bytes:
        return 0
    estimated_lines = newlines * sample.total_bytes / sample.chunk_bytes
    return max(0, round(estimated_lines) - 1)


def retry_due_at(dataset: Dataset, settings: SyncSettings) -> datetime | None:
    """When a FAILED dataset becomes eligible again; None if it is parked or not FAILED."""
    if dataset.sync_status != SyncStatus.FAILED:
        return None
    if dataset.sync_failures >= settings.max_failures:
        return None
    last_attempt = as_utc(dataset.last_sync_attempt_at)
    if last_attempt is None:
        return utc_now()
    exponent = max(0, dataset.sync_failures - 1)
    return last_attempt + timedelta(hours=settings.failure_cooldown_hours * 2**exponent)


def is_sync_eligible(dataset: Dataset, settings: SyncSettings, now: datetime | None = None) -> bool:
    """Whether a scheduled pass should sync this dataset."""
    if dataset.sync_status != SyncStatus.FAILED:
        return True
    due = retry_due_at(dataset, settings)
    if due is None:
        return False
    return (now or utc_now()) >= due


class MetadataSyncService:
    """Service for per-dataset and catalog-wide metadata refresh."""

    def __init__(
        self,
        db: AsyncSession,
        client: PortalClient | None = None,
        cache: PortalCache | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.client = client or PortalClient(self.settings.portal)
        self.cache = cache or get_cache()
        self.datasets = DatasetService(db)
        self.sync_logs = SyncLogService(db)

    async def _mark_syncing(self, dataset: Dataset) -> None:
        dataset.sync_status = SyncStatus.SYNCING
        dataset.last_sync_attempt_at = utc_now()
        await self.datasets.save(dataset)

    async def _fetch(self, external_id: str) -> tuple[PortalMetadata, int | None]:
        metadata = await self.client.get_dataset_metadata(external_id)
        if metadata is None:
            raise PortalAPIError(f"Dataset {external_id} not found on portal", status_code=404)

        if not metadata.resources:
            metadata.resources = await self.client.get_resources(external_id)

        estimated = None
        tabular = select_tabular_resource(metadata.resources)
        if tabular is not None:
            sample = await self.client.read_head(tabular.url)
            estimated = estimate_record_count(sample)
        return metadata, estimated

    def _apply(self, dataset: Dataset, metadata: PortalMetadata, estimated: int | None) -> None:
        dataset.name = metadata.name or metadata.name_localized or dataset.name
        dataset.name_localized = metadata.name_localized or dataset.name_localized
        dataset.description = metadata.description
        dataset.description_localized = metadata.description_localized
        dataset.category = metadata.category or dataset.category
        dataset.source = metadata.source or dataset.source
        dataset.source_url = self.settings.portal.view_url(dataset.external_id)
        dataset.resources = [r.model_dump() for r in metadata.resources]
        if estimated is not None:
            dataset.record_count = estimated
        dataset.extra_data = DatasetExtraData(
            tags=metadata.tags,
            update_frequency=metadata.update_frequency,
            portal_created_at=metadata.created_at,
            portal_updated_at=metadata.updated_at,
            metadata_source=metadata.metadata_source,
        ).model_dump()

        dataset.sync_status = SyncStatus.SUCCESS
        dataset.last_sync_at = utc_now()
        dataset.sync_error = None
        dataset.sync_failures = 0

    async def _record_failure(self, dataset: Dataset, error: str) -> SyncResult:
        dataset.sync_status = SyncStatus.FAILED
        dataset.sync_error = error[:2000]
        dataset.sync_failures += 1
        await self.datasets.save(dataset)
        logger.warning(
            f"Metadata sync failed for {dataset.external_id} (failure #{dataset.sync_failures}): {dataset.sync_error}"
        )
        return SyncResult(external_id=dataset.external_id, status=SyncStatus.FAILED, error=dataset.sync_error)

    async def _sync_dataset(self, dataset: Dataset) -> SyncResult:
        external_id = dataset.external_id
        await self._mark_syncing(dataset)

        try:
            metadata, estimated = await self._fetch(external_id)
        except (PortalServiceError, ValueError) as e:
            return await self._record_failure(dataset, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error fetching metadata for {external_id}")
            return await self._record_failure(dataset, f"{type(e).__name__}: {e}")

        self._apply(dataset, metadata, estimated)
        await self.datasets.save(dataset)

        cached = asdict(metadata)
        cached["resources"] = dataset.resources
        await self.cache.set(CachePurpose.METADATA, external_id, cached)

        return SyncResult(
            external_id=external_id,
            status=SyncStatus.SUCCESS,
            name=dataset.display_name,
            category=dataset.category,
            estimated_record_count=estimated,
        )

    async def sync_metadata(self, external_id: str) -> SyncResult:
        """
        Refresh one dataset's metadata and estimated record count.

        Never retries within the call; failures are recorded on the dataset.

        Raises:
            NotFoundError: The dataset is not cataloged
        """
        dataset = await self.datasets.get_by_external_id_or_404(external_id)
        started_at = utc_now()
        result = await self._sync_dataset(dataset)

        await self.sync_logs.log_job(
            JobType.METADATA_SYNC,
            SyncLogStatus.SUCCESS if result.status == SyncStatus.SUCCESS else SyncLogStatus.FAILED,
            started_at=started_at,
            dataset_external_id=dataset.external_id,
            records_count=result.estimated_record_count or 0,
            error=result.error,
        )
        return result

    async def sync_all(self) -> SyncAllResult:
        """
        Sync every cataloged dataset in creation order.

        FAILED datasets inside their cooldown window, or parked after too many
        failures, are skipped. One dataset's failure never stops the pass.
        """
        started_at = utc_now()
        started = time.monotonic()
        sync_settings = self.settings.sync

        datasets = await self.datasets.get_all_in_creation_order()
        now = utc_now()
        eligible = [d.external_id for d in datasets if is_sync_eligible(d, sync_settings, now)]
        summary = SyncAllResult(total=len(datasets), skipped=len(datasets) - len(eligible))
        logger.info(
            f"Metadata sync starting: {len(eligible)} of {len(datasets)} datasets "
            f"({summary.skipped} skipped by retry policy)"
        )

        batch_size = max(1, sync_settings.batch_size)
        for batch_start in range(0, len(eligible), batch_size):
            for external_id in eligible[batch_start:batch_start + batch_size]:
                # Rollback expires loaded instances, so each row is re-read
                dataset = await self.datasets.get_by_external_id(external_id)
                if dataset is None:
                    summary.skipped += 1
                    continue
                try:
                    result = await self._sync_dataset(dataset)
                except Exception as e:
                    logger.exception(f"Unexpected error syncing {external_id}")
                    await self.db.rollback()
                    summary.failed += 1
                    dataset = await self.datasets.get_by_external_id(external_id)
                    if dataset is not None and dataset.sync_status == SyncStatus.SYNCING:
                        await self._record_failure(dataset, f"{type(e).__name__}: {e}")
                    continue
                if result.status == SyncStatus.SUCCESS:
                    summary.success += 1
                else:
                    summary.failed += 1

            done = min(batch_start + batch_size, len(eligible))
            logger.info(
                f"Metadata sync progress: {done}/{len(eligible)} "
                f"(success={summary.success}, failed={summary.failed})"
            )

        summary.duration_seconds = round(time.monotonic() - started, 2)
        logger.info(
            f"Metadata sync complete: {summary.success} succeeded, {summary.failed} failed, "
            f"{summary.skipped} skipped in {summary.duration_seconds}s"
        )

        if summary.failed and summary.success:
            status = SyncLogStatus.PARTIAL
        elif summary.failed:
            status = SyncLogStatus.FAILED
        else:
            status = SyncLogStatus.SUCCESS
        await self.sync_logs.log_job(
            JobType.METADATA_SYNC_ALL,
            status,
            started_at=started_at,
            records_count=summary.success + summary.failed,
            details=summary.model_dump(),
        )
        return summary


def get_metadata_sync_service(db: AsyncSession, client: PortalClient | None = None) -> MetadataSyncService:
    """Factory function for MetadataSyncService."""
    return MetadataSyncService(db, client)
