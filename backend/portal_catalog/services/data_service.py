"""
On-demand data service.

Dataset records are never persisted in the catalog. They are fetched from the
dataset's tabular resource when requested and kept in the cache (cache-aside):
the cache always holds the full parsed record set, callers get their slice.

Upstream failures produce an explicit "unavailable" result, never a stale
value and never an exception.
"""

from __future__ import annotations

import asyncio
import csv
import hashlib
import io
import logging
import re
from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal_catalog.core.config import Settings, get_settings
from portal_catalog.models.base import utc_now
from portal_catalog.schemas.data import (
    DatasetData,
    DataStats,
    PortalDatasetItem,
    PortalListing,
)
from portal_catalog.schemas.enums import CachePurpose, DataSource
from portal_catalog.schemas.jsonb_types import Resource, select_tabular_resource
from portal_catalog.services.cache import PortalCache, get_cache
from portal_catalog.services.dataset_service import DatasetService
from portal_catalog.services.portal_client import PortalClient, PortalMetadata, PortalServiceError

logger = logging.getLogger(__name__)

NO_TABULAR_RESOURCE = "No tabular resource available for this dataset"
NO_RECORDS = "The dataset resource contains no records"
FETCH_FAILED = "Data could not be retrieved from the portal"
PARSE_FAILED = "The dataset resource could not be parsed"

INT_RE = re.compile(r"^[+-]?\d+$")
FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


def coerce_value(value: str | None) -> Any:
    """Best-effort typing of one CSV cell: numbers, booleans, empty -> None."""
    if value is None:
        return None
    text = value.strip()
    if text == "":
        return None
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    # Leading zeros are identifiers (codes, phone numbers), not numbers
    if INT_RE.match(text):
        digits = text.lstrip("+-")
        if len(digits) > 1 and digits.startswith("0"):
            return text
        return int(text)
    if FLOAT_RE.match(text):
        return float(text)
    return text


def parse_csv(text: str) -> tuple[list[str], list[dict[str, Any]]]:
    """
    Parse delimited text with a header row.

    Returns:
        Tuple of (columns, records); blank lines are skipped
    """
    text = text.lstrip("\ufeff")
    first_line = text.split("\n", 1)[0]
    dialect: Any = csv.excel
    if "," not in first_line:
        try:
            dialect = csv.Sniffer().sniff(text[:4096], delimiters=";\t|")
        except csv.Error:
            dialect = csv.excel

    reader = csv.reader(io.StringIO(text), dialect)
    columns: list[str] = []
    for row in reader:
        if any(cell.strip() for cell in row):
            columns = _unique_columns(row)
            break
    if not columns:
        return [], []

    records = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        records.append(
            {column: coerce_value(row[index]) if index < len(row) else None for index, column in enumerate(columns)}
        )
    return columns, records


def _unique_columns(header: list[str]) -> list[str]:
    columns: list[str] = []
    seen: dict[str, int] = {}
    for index, raw in enumerate(header):
        name = raw.strip() or f"column_{index + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        columns.append(name)
    return columns


def listing_cache_id(page: int, limit: int, search: str | None, category: str | None) -> str:
    """Stable identifier of one listing query, used as the listing-page cache id."""
    digest = hashlib.sha1(f"{search or ''}|{category or ''}".encode()).hexdigest()[:12]
    return f"p{page}-l{limit}-{digest}"


class DataService:
    """Service for cache-aside access to dataset records."""

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

    async def _cached(self, external_id: str) -> DatasetData | None:
        payload = await self.cache.get(CachePurpose.DATA, external_id)
        if payload is None:
            return None
        try:
            return DatasetData.model_validate(payload)
        except ValueError:
            logger.warning(f"Discarding malformed data cache entry for {external_id}")
            return None

    async def _resolve_resources(self, external_id: str) -> list[Resource]:
        """Resources from the catalog row, falling back to the portal resources endpoint."""
        dataset = await self.datasets.get_by_external_id(external_id)
        if dataset is not None and dataset.resources:
            return [Resource.model_validate(r) for r in dataset.resources]
        return await self.client.get_resources(external_id)

    async def _fetch_and_cache(self, external_id: str, resources: list[Resource]) -> DatasetData:
        """Download and parse the tabular resource; cache the full result. No database access."""
        resource = select_tabular_resource(resources)
        if resource is None:
            logger.warning(f"No tabular resource found for dataset {external_id}")
            return DatasetData.unavailable(external_id, NO_TABULAR_RESOURCE)

        text = await self.client.download_text(resource.url)
        try:
            columns, records = parse_csv(text)
        except csv.Error as e:
            logger.error(f"Failed to parse resource of dataset {external_id}: {e}")
            return DatasetData.unavailable(external_id, PARSE_FAILED)
        if not records:
            return DatasetData.unavailable(external_id, NO_RECORDS)

        data = DatasetData(
            id=external_id,
            records=records,
            columns=columns,
            total_records=len(records),
            fetched_at=utc_now(),
            source=DataSource.API,
        )
        await self.cache.set(CachePurpose.DATA, external_id, data)
        logger.info(f"Fetched {len(records)} records for dataset {external_id}")
        return data

    async def _update_record_count(self, external_id: str, total: int) -> None:
        dataset = await self.datasets.get_by_external_id(external_id)
        if dataset is not None and dataset.record_count != total:
            dataset.record_count = total
            await self.datasets.save(dataset)

    async def get_data(
        self,
        external_id: str,
        limit: int | None = None,
        offset: int = 0,
        force_refresh: bool = False,
    ) -> DatasetData:
        """
        Records of one dataset, sliced to [offset, offset + limit).

        Served from the cache unless force_refresh; otherwise fetched from the
        tabular resource and written to the cache unsliced.
        """
        external_id = external_id.strip().lower()

        if not force_refresh:
            cached = await self._cached(external_id)
            if cached is not None:
                logger.debug(f"Data cache hit for {external_id}")
                cached.source = DataSource.CACHE
                return cached.sliced(limit, offset)

        logger.info(f"Fetching data on demand for dataset {external_id}")
        try:
            resources = await self._resolve_resources(external_id)
            data = await self._fetch_and_cache(external_id, resources)
        except PortalServiceError as e:
            logger.error(f"Failed to fetch data for {external_id}: {e}")
            return DatasetData.unavailable(external_id, FETCH_FAILED)

        if data.available:
            await self._update_record_count(external_id, data.total_records)
        return data.sliced(limit, offset)

    async def get_preview(self, external_id: str, n: int | None = None) -> DatasetData:
        """First n records, for list views."""
        return await self.get_data(external_id, limit=n or self.settings.sync.preview_size)

    async def refresh(self, external_id: str) -> DatasetData:
        """Drop cached entries and fetch again."""
        await self.clear_cache(external_id)
        data = await self.get_data(external_id, force_refresh=True)
        return data.sliced(self.settings.sync.preview_size)

    async def clear_cache(self, external_id: str) -> None:
        """Remove the data and metadata cache entries of one dataset."""
        external_id = external_id.strip().lower()
        await self.cache.delete(CachePurpose.DATA, external_id)
        await self.cache.delete(CachePurpose.METADATA, external_id)
        logger.info(f"Cleared cache for dataset {external_id}")

    async def get_many(self, external_ids: Sequence[str], limit: int | None = None) -> dict[str, DatasetData]:
        """
        Records for several datasets.

        Cache hits are served directly; misses are downloaded with at most
        `fetch_concurrency` requests in flight. Catalog reads and writes stay
        sequential because they share one session.
        """
        requested = list(dict.fromkeys(i.strip().lower() for i in external_ids))
        results: dict[str, DatasetData] = {}
        misses: dict[str, list[Resource]] = {}

        for raw in requested:
            cached = await self._cached(raw)
            if cached is not None:
                cached.source = DataSource.CACHE
                results[raw] = cached.sliced(limit)
                continue
            try:
                misses[raw] = await self._resolve_resources(raw)
            except PortalServiceError as e:
                logger.error(f"Failed to resolve resources for {raw}: {e}")
                results[raw] = DatasetData.unavailable(raw, FETCH_FAILED)

        semaphore = asyncio.Semaphore(max(1, self.settings.sync.fetch_concurrency))

        async def fetch(external_id: str, resources: list[Resource]) -> DatasetData:
            async with semaphore:
                try:
                    return await self._fetch_and_cache(external_id, resources)
                except PortalServiceError as e:
                    logger.error(f"Failed to fetch data for {external_id}: {e}")
                    return DatasetData.unavailable(external_id, FETCH_FAILED)

        if misses:
            logger.info(f"Fetching {len(misses)} datasets on demand")
            fetched = await asyncio.gather(*(fetch(i, r) for i, r in misses.items()))
            for data in fetched:
                if data.available:
                    await self._update_record_count(data.id, data.total_records)
                results[data.id] = data.sliced(limit)

        return {external_id: results[external_id] for external_id in requested}

    async def get_stats(self, external_id: str) -> DataStats:
        """Size of the cached record set, without triggering a fetch."""
        external_id = external_id.strip().lower()
        cached = await self._cached(external_id)
        if cached is None:
            return DataStats(id=external_id)
        return DataStats(
            id=external_id,
            total_records=cached.total_records,
            columns=cached.columns,
            last_fetched=cached.fetched_at,
            cached=True,
        )

    async def list_portal_datasets(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        category: str | None = None,
        force_refresh: bool = False,
    ) -> PortalListing:
        """
        One page of the upstream search listing, cached per query.

        Raises:
            PortalServiceError: The portal could not be reached
        """
        cache_id = listing_cache_id(page, limit, search, category)
        if not force_refresh:
            payload = await self.cache.get(CachePurpose.LISTING_PAGE, cache_id)
            if payload is not None:
                listing = PortalListing.model_validate(payload)
                listing.source = DataSource.CACHE
                return listing

        packages, total = await self.client.search_packages(
            rows=limit,
            start=(page - 1) * limit,
            query=search,
            category=category,
        )
        items = []
        for package in packages:
            metadata = PortalMetadata.from_ckan(package)
            items.append(
                PortalDatasetItem(
                    id=metadata.external_id,
                    title=metadata.name,
                    title_localized=metadata.name_localized,
                    description=metadata.description,
                    category=metadata.category,
                    organization=metadata.source,
                    resource_count=len(metadata.resources),
                    updated_at=metadata.updated_at,
                )
            )

        listing = PortalListing(
            datasets=items,
            total=total,
            page=page,
            has_more=page * limit < total,
            source=DataSource.API,
            fetched_at=utc_now(),
        )
        await self.cache.set(CachePurpose.LISTING_PAGE, cache_id, listing)
        return listing


def get_data_service(db: AsyncSession, client: PortalClient | None = None) -> DataService:
    """Factory function for DataService."""
    return DataService(db, client)
