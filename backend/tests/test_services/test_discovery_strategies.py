"""
Tests for the discovery strategies and their listing walks.
"""

from __future__ import annotations

import pytest

from portal_catalog.core.config import DiscoverySettings, PortalSettings
from portal_catalog.services.discovery_strategies import (
    DEFAULT_STRATEGIES,
    DiscoveryContext,
    bulk_listing,
    category_sweep,
    keyword_sweep,
    network_capture,
    page_urls,
    paginate_listing,
    scroll_listing,
    search_api_sweep,
    with_query,
)
from fakes import FakeBrowser, FakePortalClient, listing_html, make_id

PORTAL = PortalSettings(site_url="https://portal.example", language="ar")
LISTING = PORTAL.datasets_url


def make_context(
    client: FakePortalClient,
    browser: FakeBrowser | None = None,
    full_scan: bool = False,
    **discovery: object,
) -> DiscoveryContext:
    return DiscoveryContext(
        full_scan=full_scan,
        client=client,
        settings=DiscoverySettings(**discovery),
        portal=PORTAL,
        browser=browser,
    )


class TestUrlHelpers:
    def test_with_query_adds_and_replaces(self):
        assert with_query("https://x/ds?page=2&q=a", page=3) == "https://x/ds?page=3&q=a"
        assert with_query("https://x/ds", p=1) == "https://x/ds?p=1"

    def test_page_url_shapes(self):
        assert page_urls("https://x/ds", 3, 20) == [
            "https://x/ds?page=3",
            "https://x/ds?p=3",
            "https://x/ds?offset=40",
        ]


class TestScrollListing:
    async def test_stops_after_unchanged_scrolls(self):
        ids = [make_id(i) for i in range(1, 7)]
        browser = FakeBrowser(
            pages={LISTING: listing_html(ids[:2])},
            scroll_pages=[listing_html(ids[2:4]), listing_html(ids[4:6])],
        )

        found = await scroll_listing(browser, LISTING, max_scrolls=30, no_change_limit=5)

        assert found == set(ids)
        # Two productive scrolls, then five without change
        assert browser.scrolls == 7

    async def test_respects_scroll_ceiling(self):
        batches = [listing_html([make_id(100 + i)]) for i in range(10)]
        browser = FakeBrowser(pages={LISTING: ""}, scroll_pages=batches)

        found = await scroll_listing(browser, LISTING, max_scrolls=4, no_change_limit=5)

        assert len(found) == 4
        assert browser.scrolls == 4


class TestPaginateListing:
    async def test_three_full_pages_then_empty(self):
        """Bootstrap: 3 pages of 10 identifiers, page 4 empty -> 30 identifiers."""
        ids = [make_id(i) for i in range(1, 31)]
        pages = {
            with_query(LISTING, page=n): listing_html(ids[(n - 1) * 10:n * 10])
            for n in (1, 2, 3)
        }
        browser = FakeBrowser(pages=pages)

        found = await paginate_listing(browser, LISTING, max_pages=50, empty_page_limit=3, page_size=10)

        assert found == set(ids)
        # Pages 4-6 are tried in every shape before stopping
        assert with_query(LISTING, page=7) not in browser.visited
        assert with_query(LISTING, page=6) in browser.visited

    async def test_falls_back_to_offset_shape(self):
        ids = [make_id(i) for i in range(1, 5)]
        pages = {
            with_query(LISTING, offset=0): listing_html(ids[:2]),
            with_query(LISTING, offset=2): listing_html(ids[2:]),
        }
        browser = FakeBrowser(pages=pages)

        found = await paginate_listing(browser, LISTING, max_pages=10, empty_page_limit=3, page_size=2)

        assert found == set(ids)

    async def test_repeated_page_counts_as_empty(self):
        ids = [make_id(i) for i in range(1, 4)]
        # A portal that ignores the page parameter serves the same cards forever
        browser = FakeBrowser()
        browser.pages = {url: listing_html(ids) for n in range(1, 20) for url in page_urls(LISTING, n, 20)}

        found = await paginate_listing(browser, LISTING, max_pages=19, empty_page_limit=3, page_size=20)

        assert found == set(ids)
        assert with_query(LISTING, page=5) not in browser.visited


class TestApiStrategies:
    async def test_bulk_listing_filters_invalid(self):
        client = FakePortalClient()
        client.package_ids = [make_id(1), make_id(2).upper(), "not-an-id", "00000000-0000-0000-0000-000000000000"]

        assert await bulk_listing(make_context(client)) == {make_id(1), make_id(2)}

    async def test_search_api_pages_until_total(self):
        client = FakePortalClient()
        client.packages = [{"id": make_id(i), "title": f"D{i}"} for i in range(1, 251)]
        context = make_context(client)
        context.portal = PortalSettings(search_page_size=100)

        found = await search_api_sweep(context)

        assert len(found) == 250
        assert client.count("search_packages") == 3

    async def test_search_api_adds_seed_terms_on_full_scan(self):
        client = FakePortalClient()
        client.packages = [{"id": make_id(1)}]

        await search_api_sweep(make_context(client, full_scan=True, seed_terms=["م", "ع"]))

        queries = [args[2] for name, args in client.calls if name == "search_packages"]
        assert queries == [None, "م", "ع"]


class TestBrowserStrategies:
    async def test_network_capture_drains_captured(self):
        browser = FakeBrowser(captured={make_id(1), make_id(2)})

        found = await network_capture(make_context(FakePortalClient(), browser))

        assert found == {make_id(1), make_id(2)}
        assert browser.visited == [LISTING]

    async def test_browser_strategy_without_browser_raises(self):
        with pytest.raises(RuntimeError):
            await network_capture(make_context(FakePortalClient()))

    async def test_category_sweep_visits_each_category(self):
        economy = with_query(LISTING, category="الاقتصاد")
        browser = FakeBrowser(pages={economy: listing_html([make_id(7)])})
        context = make_context(
            FakePortalClient(),
            browser,
            full_scan=True,
            categories=["الاقتصاد", "الصحة"],
            full_max_scrolls=2,
            full_max_pages=2,
        )

        found = await category_sweep(context)

        assert found == {make_id(7)}
        assert economy in browser.visited
        assert with_query(LISTING, category="الصحة") in browser.visited

    async def test_keyword_sweep_skips_failing_term(self):
        class FlakyBrowser(FakeBrowser):
            async def goto(self, url: str) -> str:
                if url == with_query(LISTING, q="ا"):
                    raise TimeoutError("navigation timeout")
                return await super().goto(url)

        term_url = with_query(LISTING, q="م")
        browser = FlakyBrowser(pages={term_url: listing_html([make_id(9)])})
        context = make_context(
            FakePortalClient(),
            browser,
            full_scan=True,
            seed_terms=["ا", "م"],
            full_max_scrolls=1,
            full_max_pages=1,
        )

        assert await keyword_sweep(context) == {make_id(9)}


class TestDefaultOrder:
    def test_order_and_flags(self):
        names = [s.name for s in DEFAULT_STRATEGIES]
        assert names == [
            "bulk_listing",
            "search_api",
            "network_capture",
            "scroll",
            "url_pagination",
            "category_sweep",
            "keyword_sweep",
        ]
        full_only = {s.name for s in DEFAULT_STRATEGIES if s.full_scan_only}
        assert full_only == {"category_sweep", "keyword_sweep"}
