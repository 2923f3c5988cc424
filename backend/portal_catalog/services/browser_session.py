"""
Headless browser session for client-rendered portal listing pages.

One BrowserSession is opened per discovery pass and handed to every strategy
that needs it. While open, every JSON response the page loads from a
data-looking URL is parsed for identifiers (passive network capture).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Response, async_playwright

from portal_catalog.core.config import BrowserSettings, PortalSettings, get_settings
from portal_catalog.services.identifiers import extract_api_items, ids_from_bare_tokens

logger = logging.getLogger(__name__)

__all__ = ["BrowserSession", "BrowserUnavailableError", "is_data_response"]

DATA_URL_MARKERS = ("/api/", "/data/", "datasets", "search")


class BrowserUnavailableError(Exception):
    """No browser backend is configured or it could not be started."""


def is_data_response(url: str, content_type: str | None) -> bool:
    """Whether an intercepted response should be scanned for identifiers."""
    if not content_type or "json" not in content_type.lower():
        return False
    return any(marker in url for marker in DATA_URL_MARKERS)


class BrowserSession:
    """
    A single Playwright page with network capture.

    Usage:
        async with BrowserSession() as browser:
            html = await browser.goto(url)
            await browser.scroll_to_bottom()
            captured = await browser.drain_captured_ids()
    """

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        portal: PortalSettings | None = None,
    ):
        self.settings = settings or get_settings().browser
        self.portal = portal or get_settings().portal
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._captured: set[str] = set()
        self._pending: set[asyncio.Task] = set()
        self.responses_seen = 0

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch or connect to Chromium and open the shared page."""
        if not self.settings.is_configured:
            raise BrowserUnavailableError(
                "No browser configured (set BROWSER_WS_ENDPOINT or BROWSER_LAUNCH_LOCAL)"
            )
        try:
            self._playwright = await async_playwright().start()
            if self.settings.ws_endpoint:
                logger.info("Connecting to remote browser over CDP")
                self._browser = await self._playwright.chromium.connect_over_cdp(self.settings.ws_endpoint)
            else:
                self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
            self._context = await self._browser.new_context(
                user_agent=self.portal.user_agent,
                viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
                locale="ar-SA",
                extra_http_headers={"Accept-Language": self.portal.accept_language},
            )
            self._page = await self._context.new_page()
            self._page.set_default_navigation_timeout(self.settings.navigation_timeout * 1000)
            self._page.on("response", self._on_response)
        except PlaywrightError as e:
            await self.close()
            raise BrowserUnavailableError(f"Browser failed to start: {e}") from e

    async def close(self) -> None:
        """Close page, context, browser and the Playwright driver."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        for resource in (self._context, self._browser):
            if resource is not None:
                try:
                    await resource.close()
                except PlaywrightError as e:
                    logger.debug(f"Ignoring browser close error: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None

    def _on_response(self, response: Response) -> None:
        content_type = response.headers.get("content-type")
        if not is_data_response(response.url, content_type):
            return
        task = asyncio.create_task(self._capture(response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _capture(self, response: Response) -> None:
        try:
            body = await response.text()
        except PlaywrightError as e:
            # Bodies of redirected or aborted responses are not retrievable
            logger.debug(f"Could not read captured response {response.url}: {e}")
            return
        self.responses_seen += 1
        found = set(extract_api_items(body)) | ids_from_bare_tokens(body)
        if found:
            logger.debug(f"Captured {len(found)} identifiers from {response.url}")
            self._captured |= found

    async def drain_captured_ids(self) -> set[str]:
        """Wait for in-flight captures and return everything captured so far, then reset."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        captured, self._captured = self._captured, set()
        return captured

    async def goto(self, url: str) -> str:
        """Navigate and return the rendered HTML."""
        logger.debug(f"Navigating to {url}")
        await self._page.goto(
            url,
            timeout=self.settings.navigation_timeout * 1000,
            wait_until="networkidle",
        )
        return await self._page.content()

    async def content(self) -> str:
        """Current rendered HTML."""
        return await self._page.content()

    async def scroll_to_bottom(self) -> None:
        """Scroll to the end of the page and give lazy loading time to render."""
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        await asyncio.sleep(self.settings.scroll_delay)
