"""
Open-data portal HTTP client.

Provides async methods for the portal's CKAN-style action API, its own data
API and plain resource downloads. Uses niquests AsyncSession for HTTP and
tenacity for bounded exponential-backoff retries on transient failures.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import niquests
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from portal_catalog.core.config import PortalSettings, get_settings
from portal_catalog.schemas.jsonb_types import Resource

logger = logging.getLogger(__name__)

CONTENT_RANGE_RE = re.compile(r"bytes\s+\d+-\d+/(\d+)")


@dataclass
class PortalMetadata:
    """Descriptive metadata of one portal dataset, normalized across endpoints."""

    external_id: str
    name: str | None = None
    name_localized: str | None = None
    description: str | None = None
    description_localized: str | None = None
    category: str | None = None
    source: str | None = None
    resources: list[Resource] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    update_frequency: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    metadata_source: str = "data_api"

    @classmethod
    def from_data_api(cls, external_id: str, payload: dict[str, Any]) -> PortalMetadata:
        """Build from the data API `datasets?dataset=` response."""
        categories = payload.get("categories") or []
        category = None
        if categories and isinstance(categories[0], dict):
            category = categories[0].get("titleAr") or categories[0].get("titleEn")
        return cls(
            external_id=external_id,
            name=payload.get("titleEn") or payload.get("titleAr"),
            name_localized=payload.get("titleAr"),
            description=payload.get("descriptionEn") or payload.get("descriptionAr"),
            description_localized=payload.get("descriptionAr"),
            category=category,
            source=payload.get("providerNameAr") or payload.get("providerNameEn"),
            resources=_resources_from_payload(payload.get("resources")),
            tags=[t for t in payload.get("tags") or [] if isinstance(t, str)],
            update_frequency=payload.get("updateFrequency"),
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
            metadata_source="data_api",
        )

    @classmethod
    def from_ckan(cls, payload: dict[str, Any]) -> PortalMetadata:
        """Build from a CKAN package (package_show result or package_search item)."""
        groups = payload.get("groups") or []
        organization = payload.get("organization") or {}
        return cls(
            external_id=str(payload.get("id", "")).lower(),
            name=payload.get("title_en") or payload.get("title") or payload.get("name"),
            name_localized=payload.get("title_ar") or payload.get("title"),
            description=payload.get("notes"),
            description_localized=payload.get("notes_ar"),
            category=groups[0].get("title") if groups and isinstance(groups[0], dict) else None,
            source=organization.get("title") if isinstance(organization, dict) else None,
            resources=_resources_from_payload(payload.get("resources")),
            tags=[t.get("name") for t in payload.get("tags") or [] if isinstance(t, dict) and t.get("name")],
            update_frequency=payload.get("update_frequency"),
            created_at=payload.get("metadata_created"),
            updated_at=payload.get("metadata_modified"),
            metadata_source="ckan",
        )


@dataclass
class RangeSample:
    """First bytes of a resource plus what the server said about its size."""

    text: str
    chunk_bytes: int
    total_bytes: int | None
    complete: bool


def _resources_from_payload(items: Any) -> list[Resource]:
    if not isinstance(items, list):
        return []
    return [_resource_from_payload(item) for item in items if isinstance(item, dict)]


def _resource_from_payload(payload: dict[str, Any]) -> Resource:
    size = payload.get("size")
    return Resource(
        id=str(payload["id"]) if payload.get("id") is not None else None,
        name=payload.get("name") or payload.get("titleAr") or payload.get("titleEn"),
        format=payload.get("format"),
        url=payload.get("downloadUrl") or payload.get("url"),
        size=int(size) if isinstance(size, (int, float)) or (isinstance(size, str) and size.isdigit()) else None,
    )


class PortalServiceError(Exception):
    """Base exception for portal client errors."""

    transient = False


class PortalNetworkError(PortalServiceError):
    """Network error when communicating with the portal."""

    transient = True


class PortalAPIError(PortalServiceError):
    """The portal answered with an error status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, transient: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, PortalServiceError) and error.transient


class PortalClient:
    """
    Client for the upstream open-data portal.

    Usage:
        async with PortalClient() as client:
            ids = await client.list_package_ids()
    """

    def __init__(self, settings: PortalSettings | None = None):
        self.settings = settings or get_settings().portal
        self._session: niquests.AsyncSession | None = None

    async def __aenter__(self) -> "PortalClient":
        """Context manager entry - creates session."""
        self._session = niquests.AsyncSession()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Context manager exit - closes session."""
        await self.close()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _get_session(self) -> niquests.AsyncSession:
        """Get or create the HTTP session."""
        if self._session is None:
            self._session = niquests.AsyncSession()
        return self._session

    @property
    def api_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/json",
            "Accept-Language": self.settings.accept_language,
        }

    @property
    def download_headers(self) -> dict[str, str]:
        """Browser-like headers; the portal's WAF rejects bare clients on resource URLs."""
        return {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/csv,text/plain,*/*",
            "Accept-Language": self.settings.accept_language,
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Referer": f"{self.settings.site_url}/",
            "Origin": self.settings.site_url,
        }

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.max_retries)),
            wait=wait_exponential(multiplier=self.settings.retry_backoff, max=30),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _send(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        allowed_statuses: tuple[int, ...] = (),
    ) -> niquests.Response:
        """
        Issue one GET and map failures onto the portal error hierarchy.

        Raises:
            PortalNetworkError: On network/timeout issues
            PortalAPIError: On error status codes (5xx and 429 are transient)
        """
        session = await self._get_session()
        timeout = timeout or self.settings.timeout

        try:
            response = await session.get(
                url,
                params=params,
                headers=headers or self.api_headers,
                timeout=timeout,
            )
        except niquests.exceptions.Timeout as e:
            logger.error(f"Portal request timeout for {url}: {e}")
            raise PortalNetworkError(f"Request timed out after {timeout}s") from e

        except niquests.exceptions.ConnectionError as e:
            logger.error(f"Portal connection error for {url}: {e}")
            raise PortalNetworkError(f"Connection error: {e}") from e

        except niquests.exceptions.RequestException as e:
            logger.error(f"Portal request error for {url}: {e}")
            raise PortalNetworkError(f"Request failed: {e}") from e

        status = response.status_code or 0
        if status in allowed_statuses:
            return response
        if status >= 400:
            raise PortalAPIError(
                f"Portal returned HTTP {status} for {url}",
                status_code=status,
                transient=status >= 500 or status == 429,
            )
        return response

    async def _request(self, url: str, **kwargs: Any) -> niquests.Response:
        """_send with retries on transient failures."""
        async for attempt in self._retrying():
            with attempt:
                return await self._send(url, **kwargs)
        raise PortalServiceError(f"Retries exhausted for {url}")  # pragma: no cover

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        async for attempt in self._retrying():
            with attempt:
                response = await self._send(url, params=params)
                try:
                    return response.json()
                except ValueError as e:
                    raise PortalAPIError(
                        f"Malformed JSON from {url}",
                        status_code=response.status_code,
                        transient=True,
                    ) from e
        raise PortalServiceError(f"Retries exhausted for {url}")  # pragma: no cover

    async def _action(self, action: str, params: dict[str, Any] | None = None) -> Any:
        """Call a CKAN action and unwrap its `result`."""
        data = await self._get_json(f"{self.settings.api_base_url}/{action}", params=params)
        if not isinstance(data, dict) or not data.get("success", False):
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise PortalAPIError(f"{action} failed: {message or 'unsuccessful response'}")
        return data.get("result")

    async def list_package_ids(self) -> list[str]:
        """Bulk listing of every package identifier (package_list)."""
        result = await self._action("package_list")
        return [str(item) for item in result or [] if item]

    async def search_packages(
        self,
        rows: int,
        start: int = 0,
        query: str | None = None,
        category: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        One page of package_search.

        Returns:
            Tuple of (packages, total_count)
        """
        params: dict[str, Any] = {"rows": rows, "start": start}
        if query:
            params["q"] = query
        if category:
            params["fq"] = f'groups:"{category}"'
        result = await self._action("package_search", params) or {}
        return list(result.get("results") or []), int(result.get("count") or 0)

    async def get_package(self, external_id: str) -> dict[str, Any] | None:
        """package_show for one dataset; None when the portal does not know it."""
        try:
            return await self._action("package_show", {"id": external_id})
        except PortalAPIError as e:
            if e.status_code == 404:
                return None
            raise

    async def get_dataset_metadata(self, external_id: str) -> PortalMetadata | None:
        """
        Descriptive metadata for one dataset.

        Tries the portal data API first and falls back to CKAN package_show.
        Returns None when neither endpoint knows the dataset.
        """
        try:
            payload = await self._get_json(
                f"{self.settings.data_api_base_url}/datasets",
                params={"version": -1, "dataset": external_id},
            )
            if isinstance(payload, dict) and payload:
                return PortalMetadata.from_data_api(external_id, payload)
        except PortalAPIError as e:
            logger.warning(f"Data API metadata unavailable for {external_id}: {e}")

        package = await self.get_package(external_id)
        if not package:
            return None
        metadata = PortalMetadata.from_ckan(package)
        metadata.external_id = external_id
        return metadata

    async def get_resources(self, external_id: str) -> list[Resource]:
        """Resource list from the data API resources endpoint."""
        payload = await self._get_json(
            f"{self.settings.data_api_base_url}/datasets/resources",
            params={"version": -1, "dataset": external_id},
        )
        items = payload.get("resources") if isinstance(payload, dict) else payload
        return _resources_from_payload(items)

    async def download_text(self, url: str) -> str:
        """Full body of a resource URL, decoded as text."""
        response = await self._request(
            url,
            headers=self.download_headers,
            timeout=self.settings.download_timeout,
        )
        return _decode(response)

    async def read_head(self, url: str, nbytes: int | None = None) -> RangeSample:
        """
        First `nbytes` of a resource via a Range request.

        Servers that ignore Range answer 200 with the whole body; that body is
        then the complete file and is reported as such.
        """
        nbytes = nbytes or self.settings.range_chunk_bytes
        headers = {**self.download_headers, "Range": f"bytes=0-{nbytes - 1}"}
        response = await self._request(
            url,
            headers=headers,
            timeout=self.settings.download_timeout,
            allowed_statuses=(416,),
        )
        if response.status_code == 416:
            return RangeSample(text="", chunk_bytes=0, total_bytes=0, complete=True)

        content = response.content or b""
        if response.status_code == 206:
            total = _total_length(response)
            complete = total is not None and total <= len(content)
        else:
            total = len(content)
            complete = True

        return RangeSample(
            text=_decode(response, content),
            chunk_bytes=len(content),
            total_bytes=total,
            complete=complete,
        )


def _encoding(response: niquests.Response) -> str:
    # Only trust an explicit charset; the ISO-8859-1 fallback for text/* mangles Arabic
    content_type = response.headers.get("Content-Type") or ""
    if "charset=" in content_type.lower() and response.encoding:
        try:
            return codecs.lookup(response.encoding).name
        except LookupError:
            logger.warning(f"Unknown charset {response.encoding!r}, decoding as UTF-8")
    return "utf-8"


def _decode(response: niquests.Response, content: bytes | None = None) -> str:
    if content is None:
        content = response.content or b""
    # Strip the UTF-8 BOM some portal exports carry
    return content.decode(_encoding(response), errors="replace").lstrip("\ufeff")


def _total_length(response: niquests.Response) -> int | None:
    content_range = response.headers.get("Content-Range")
    if content_range:
        match = CONTENT_RANGE_RE.search(content_range)
        if match:
            return int(match.group(1))
    return None


def get_portal_client() -> PortalClient:
    """Factory function for PortalClient."""
    return PortalClient()
