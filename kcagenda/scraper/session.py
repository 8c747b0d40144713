# kcagenda/scraper/session.py
"""
Browser session management for Playwright-based scraping.

One headless browser per job run. Each fetch opens its own page and closes
it before returning, so resolvers can share a session without stepping on
each other's navigation. The browser is always closed on exit, including
when a job fails.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, Response, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeout

from kcagenda.config import CONSENT_REJECT_SELECTOR, USER_AGENT, Settings
from kcagenda.errors import FetchTimeout

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    Async context manager around a Playwright Chromium instance.

    Usage:
        async with BrowserSession(settings) as session:
            html = await session.get_html(url, selector="table.wikitable")
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
            self._context = await self._browser.new_context(
                viewport={"width": 1920, "height": 1080},
                user_agent=USER_AGENT,
            )
            self._context.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        except Exception as e:
            await self.close()
            raise RuntimeError(f"Failed to launch browser: {e}")

    async def close(self) -> None:
        """Release the browser. Safe to call more than once."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug("Context close failed: %s", e)
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("Browser close failed: %s", e)
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed: %s", e)
            self._playwright = None

    async def _new_page(self) -> Page:
        if self._context is None:
            raise RuntimeError("Browser session is not started")
        return await self._context.new_page()

    async def _goto(self, page: Page, url: str, wait_until: str) -> None:
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=self.settings.navigation_timeout_ms)
        except PlaywrightTimeout as e:
            raise FetchTimeout(f"Navigation to {url} timed out: {e}")
        if response is not None and response.status >= 400:
            logger.warning("HTTP %s for %s", response.status, url)

    async def _dismiss_consent(self, page: Page) -> None:
        """Click the cookie banner reject button when it shows up."""
        try:
            await page.click(CONSENT_REJECT_SELECTOR, timeout=self.settings.selector_timeout_ms)
        except PlaywrightTimeout:
            return
        except Exception as e:
            logger.debug("Consent dismissal failed: %s", e)

    async def get_html(
        self,
        url: str,
        selector: Optional[str] = None,
        wait_until: str = "domcontentloaded",
        dismiss_consent: bool = False,
    ) -> Optional[str]:
        """
        Navigate to url and return the rendered HTML.

        Raises FetchTimeout when navigation times out. Returns None when
        selector is given and never appears.
        """
        page = await self._new_page()
        try:
            await self._goto(page, url, wait_until)
            if dismiss_consent:
                await self._dismiss_consent(page)
            if selector:
                try:
                    await page.wait_for_selector(selector, timeout=self.settings.selector_timeout_ms)
                except PlaywrightTimeout:
                    logger.info("Selector %r not found on %s", selector, url)
                    return None
            return await page.content()
        finally:
            await page.close()

    async def capture_json(
        self,
        url: str,
        predicate: Callable[[str], bool],
        timeout_s: Optional[float] = None,
        expected: int = 1,
    ) -> List[Tuple[str, Any]]:
        """
        Load url and collect (url, JSON body) of responses whose URL matches predicate.

        Stops after `expected` bodies or the timeout, whichever comes first.
        Returns what was captured, possibly nothing.
        """
        timeout_s = self.settings.intercept_timeout_s if timeout_s is None else timeout_s
        captured: List[Tuple[str, Any]] = []
        page = await self._new_page()

        async def handle_response(response: Response):
            if not predicate(response.url):
                return
            try:
                captured.append((response.url, await response.json()))
                logger.debug("Captured %s (HTTP %s)", response.url, response.status)
            except Exception as exc:
                logger.warning("Could not parse intercepted response %s: %s", response.url, exc)

        page.on("response", handle_response)
        try:
            await self._goto(page, url, "domcontentloaded")
            polls = max(1, int(timeout_s / 0.25))
            for _ in range(polls):
                if len(captured) >= expected:
                    break
                await asyncio.sleep(0.25)
            if not captured:
                logger.warning("No matching response captured from %s within %.1fs", url, timeout_s)
            return captured
        finally:
            page.remove_listener("response", handle_response)
            await page.close()

    async def request_json(self, url: str) -> Any:
        """GET a JSON endpoint through the browser context (shares cookies)."""
        if self._context is None:
            raise RuntimeError("Browser session is not started")
        try:
            response = await self._context.request.get(url, timeout=self.settings.navigation_timeout_ms)
        except PlaywrightTimeout as e:
            raise FetchTimeout(f"Request to {url} timed out: {e}")
        if not response.ok:
            raise RuntimeError(f"HTTP {response.status} for {url}")
        return await response.json()
