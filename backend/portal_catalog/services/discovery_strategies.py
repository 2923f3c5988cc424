"""
Discovery strategies.

Each strategy is an async callable `(DiscoveryContext) -> set[str]` that
returns the dataset identifiers it could find. Strategies are independent:
they never see or remove each other's results, the caller unions them.

Order (see DEFAULT_STRATEGIES):
1. bulk_listing     - CKAN package_list, one call
2. search_api       - package_search pages (seed terms too on full scan)
3. network_capture  - JSON responses intercepted while the listing renders
4. scroll           - scroll-to-bottom until nothing new appears
5. url_pagination   - page=/p=/offset= pages until consecutive empty pages
6. category_sweep   - 4 + 5 per category (full scan only)
7. keyword_sweep    - 4 + 5 per seed term (full scan only)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

from portal_catalog.core.config import DiscoverySettings, PortalSettings
from portal_catalog.services.identifiers import extract_api_items, extract_ids, is_valid_identifier
from portal_catalog.services.portal_client import PortalClient

logger = logging.getLogger(__name__)


class PageSession(Protocol):
    """What strategies need from a browser session."""

    async def goto(self, url: str) -> str: ...

    async def content(self) -> str: ...

    async def scroll_to_bottom(self) -> None: ...

    async def drain_captured_ids(self) -> set[str]: ...


@dataclass
class DiscoveryContext:
    """Everything a strategy may use during one pass."""

    full_scan: bool
    client: PortalClient
    settings: DiscoverySettings
    portal: PortalSettings
    browser: PageSession | None = None

    @property
    def max_scrolls(self) -> int:
        return self.settings.full_max_scrolls if self.full_scan else self.settings.quick_max_scrolls

    @property
    def max_pages(self) -> int:
        return self.settings.full_max_pages if self.full_scan else self.settings.quick_max_pages

    def require_browser(self) -> PageSession:
        if self.browser is None:
            raise RuntimeError("Strategy requires a browser session")
        return self.browser


Strategy = Callable[[DiscoveryContext], Awaitable[set[str]]]


@dataclass(frozen=True)
class DiscoveryStrategy:
    """A named strategy plus when it applies."""

    name: str
    run: Strategy
    needs_browser: bool = False
    full_scan_only: bool = False


def with_query(url: str, **params: str | int) -> str:
    """Return url with params added (existing keys are replaced)."""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query))
    query.update({key: str(value) for key, value in params.items()})
    return urlunsplit(parts._replace(query=urlencode(query)))


def page_urls(base_url: str, page: int, page_size: int) -> list[str]:
    """Conventional pagination shapes for one page number, tried in order."""
    return [
        with_query(base_url, page=page),
        with_query(base_url, p=page),
        with_query(base_url, offset=(page - 1) * page_size),
    ]


# =============================================================================
# Browser-backed listing walks
# =============================================================================


async def scroll_listing(
    browser: PageSession,
    url: str,
    max_scrolls: int,
    no_change_limit: int,
) -> set[str]:
    """Load url, then scroll until `no_change_limit` scrolls in a row add nothing."""
    found = extract_ids(await browser.goto(url))
    unchanged = 0

    for attempt in range(1, max_scrolls + 1):
        await browser.scroll_to_bottom()
        new_ids = extract_ids(await browser.content()) - found
        if new_ids:
            found |= new_ids
            unchanged = 0
            logger.debug(f"Scroll {attempt}: +{len(new_ids)} (total {len(found)})")
            continue
        unchanged += 1
        if unchanged >= no_change_limit:
            logger.debug(f"Scroll stopped after {attempt} attempts, {unchanged} without change")
            break

    return found


async def paginate_listing(
    browser: PageSession,
    base_url: str,
    max_pages: int,
    empty_page_limit: int,
    page_size: int,
) -> set[str]:
    """
    Walk numbered pages of a listing.

    For each page number the pagination shapes are tried in order and the
    first one that yields unseen identifiers is used. Stops after
    `empty_page_limit` consecutive pages without new identifiers.
    """
    found: set[str] = set()
    empty_pages = 0

    for page in range(1, max_pages + 1):
        new_ids: set[str] = set()
        for url in page_urls(base_url, page, page_size):
            try:
                html = await browser.goto(url)
            except Exception as e:
                logger.warning(f"Pagination request failed for {url}: {e}")
                continue
            new_ids = extract_ids(html) - found
            if new_ids:
                break

        if new_ids:
            found |= new_ids
            empty_pages = 0
            logger.debug(f"Page {page}: +{len(new_ids)} (total {len(found)})")
            continue

        empty_pages += 1
        if empty_pages >= empty_page_limit:
            logger.debug(f"Pagination stopped at page {page} after {empty_pages} empty pages")
            break

    return found


async def _sweep_listing(context: DiscoveryContext, url: str) -> set[str]:
    browser = context.require_browser()
    found = await scroll_listing(browser, url, context.max_scrolls, context.settings.scroll_no_change_limit)
    found |= await paginate_listing(
        browser,
        url,
        context.max_pages,
        context.settings.empty_page_limit,
        context.settings.page_size,
    )
    return found


# =============================================================================
# Strategies
# =============================================================================


async def bulk_listing(context: DiscoveryContext) -> set[str]:
    """Every identifier from the package_list endpoint."""
    ids = await context.client.list_package_ids()
    return {i.strip().lower() for i in ids if is_valid_identifier(i)}


async def search_api_sweep(context: DiscoveryContext) -> set[str]:
    """Page through package_search; on full scan also once per seed term."""
    queries: list[str | None] = [None]
    if context.full_scan:
        queries.extend(context.settings.seed_terms)

    rows = context.portal.search_page_size
    found: set[str] = set()
    for query in queries:
        start = 0
        for _ in range(context.settings.search_api_max_pages):
            packages, total = await context.client.search_packages(rows=rows, start=start, query=query)
            if not packages:
                break
            found |= set(extract_api_items(packages))
            start += rows
            if start >= total:
                break
    return found


async def network_capture(context: DiscoveryContext) -> set[str]:
    """Identifiers from JSON the listing page loads in the background."""
    browser = context.require_browser()
    await browser.goto(context.portal.datasets_url)
    return await browser.drain_captured_ids()


async def scroll_exhaustion(context: DiscoveryContext) -> set[str]:
    """Infinite-scroll walk of the primary listing page."""
    return await scroll_listing(
        context.require_browser(),
        context.portal.datasets_url,
        context.max_scrolls,
        context.settings.scroll_no_change_limit,
    )


async def url_pagination(context: DiscoveryContext) -> set[str]:
    """Numbered-page walk of the primary listing page."""
    return await paginate_listing(
        context.require_browser(),
        context.portal.datasets_url,
        context.max_pages,
        context.settings.empty_page_limit,
        context.settings.page_size,
    )


async def category_sweep(context: DiscoveryContext) -> set[str]:
    """Scroll and paginate the listing filtered by each known category."""
    found: set[str] = set()
    for category in context.settings.categories:
        url = with_query(context.portal.datasets_url, category=category)
        try:
            ids = await _sweep_listing(context, url)
        except Exception as e:
            logger.warning(f"Category sweep failed for '{category}': {e}")
            continue
        logger.info(f"Category '{category}': {len(ids)} identifiers")
        found |= ids
    return found


async def keyword_sweep(context: DiscoveryContext) -> set[str]:
    """Scroll and paginate the listing searched by each seed term."""
    found: set[str] = set()
    for term in context.settings.seed_terms:
        url = with_query(context.portal.datasets_url, q=term)
        try:
            ids = await _sweep_listing(context, url)
        except Exception as e:
            logger.warning(f"Keyword sweep failed for '{term}': {e}")
            continue
        logger.info(f"Search term '{term}': {len(ids)} identifiers")
        found |= ids
    return found


DEFAULT_STRATEGIES: tuple[DiscoveryStrategy, ...] = (
    DiscoveryStrategy("bulk_listing", bulk_listing),
    DiscoveryStrategy("search_api", search_api_sweep),
    DiscoveryStrategy("network_capture", network_capture, needs_browser=True),
    DiscoveryStrategy("scroll", scroll_exhaustion, needs_browser=True),
    DiscoveryStrategy("url_pagination", url_pagination, needs_browser=True),
    DiscoveryStrategy("category_sweep", category_sweep, needs_browser=True, full_scan_only=True),
    DiscoveryStrategy("keyword_sweep", keyword_sweep, needs_browser=True, full_scan_only=True),
)
