"""
Browser session provider backed by Playwright.

One browser context is shared by every rendered scrape of the process: it
is created lazily on first use, guarded by an asyncio.Lock so concurrent
callers never launch two browsers, and closed by whoever owns the manager.
Pages are per-operation and always closed on exit.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from company_metrics.common.config import Config
from company_metrics.services.credentials import CredentialProvider

logger = logging.getLogger(__name__)

LINKEDIN_ORIGIN = "https://www.linkedin.com"

_JSON_CONTENT_TYPE = re.compile(r"json|vnd\.linkedin", re.IGNORECASE)
_VOYAGER_URL = re.compile(r"voyager/api", re.IGNORECASE)

JsonResponseCallback = Callable[[str, Any], None]


class RenderedPage:
    """Adapter exposing the handful of page operations the scrapers need."""

    def __init__(self, page, navigation_timeout_ms: Optional[int] = None):
        self._page = page
        self.navigation_timeout_ms = navigation_timeout_ms or Config.NAVIGATION_TIMEOUT_MS

    @property
    def current_url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout_ms: Optional[int] = None) -> Optional[int]:
        """Navigate and return the main response status (None if unknown)."""
        response = await self._page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=timeout_ms or self.navigation_timeout_ms,
        )
        return response.status if response is not None else None

    async def settle(self) -> None:
        """Best-effort wait for the page to finish loading."""
        for state, timeout in (("domcontentloaded", 15000), ("networkidle", 10000)):
            try:
                await self._page.wait_for_load_state(state, timeout=timeout)
            except PlaywrightTimeoutError:
                logger.debug(f"Load state '{state}' not reached for {self.current_url}")

    async def wait_for_selector(self, selector: str, timeout_ms: int = 15000) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def wait(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def body_text(self) -> str:
        return await self._page.evaluate("() => document.body ? document.body.innerText : ''")

    async def html(self) -> str:
        return await self._page.content()

    async def click_first_text(self, texts: Iterable[str]) -> Optional[str]:
        """Click the first visible button whose label matches; returns that label."""
        for text in texts:
            locator = self._page.locator(f'button:has-text("{text}")')
            try:
                if await locator.count() == 0:
                    continue
                await locator.first.click(timeout=1000)
                await self._page.wait_for_timeout(200)
                return text
            except PlaywrightError as e:
                logger.debug(f"Could not click '{text}': {e}")
        return None

    async def count_nodes(self, selector: str) -> int:
        return await self._page.locator(selector).count()

    def on_json_response(self, callback: JsonResponseCallback) -> None:
        """Call callback(url, payload) for every JSON-looking response."""

        async def _handle(response) -> None:
            content_type = response.headers.get("content-type", "")
            if not _JSON_CONTENT_TYPE.search(content_type) and not _VOYAGER_URL.search(response.url):
                return
            try:
                payload = await response.json()
            except (PlaywrightError, ValueError):
                return
            callback(response.url, payload)

        self._page.on("response", _handle)

    async def close(self) -> None:
        await self._page.close()


class BrowserSession:
    """A live browser context; hands out short-lived pages."""

    def __init__(self, context, navigation_timeout_ms: Optional[int] = None):
        self.context = context
        self.navigation_timeout_ms = navigation_timeout_ms or Config.NAVIGATION_TIMEOUT_MS

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[RenderedPage]:
        page = RenderedPage(await self.context.new_page(), self.navigation_timeout_ms)
        try:
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug(f"Page close failed: {e}")


class BrowserSessionProvider(ABC):
    """Supplies the shared browser session."""

    @abstractmethod
    async def get_session(self) -> BrowserSession:
        pass

    async def close(self) -> None:
        pass


class PlaywrightSessionManager(BrowserSessionProvider):
    """
    Lazily launched Chromium with the LinkedIn session cookie injected.

    Usage:
        async with PlaywrightSessionManager(credentials) as manager:
            session = await manager.get_session()
            async with session.open_page() as page:
                await page.goto("https://www.linkedin.com/company/acme/")
    """

    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        headless: Optional[bool] = None,
        user_agent: Optional[str] = None,
        storage_state_path: Optional[str] = None,
        navigation_timeout_ms: Optional[int] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.credentials = credentials
        self.headless = Config.HEADLESS if headless is None else headless
        self.user_agent = user_agent or Config.USER_AGENT
        self.storage_state_path = storage_state_path if storage_state_path is not None else Config.STORAGE_STATE_PATH
        self.navigation_timeout_ms = navigation_timeout_ms or Config.NAVIGATION_TIMEOUT_MS
        self._playwright_factory = playwright_factory
        self._lock = asyncio.Lock()
        self._playwright = None
        self._browser = None
        self._session: Optional[BrowserSession] = None
        self.launches = 0

    async def __aenter__(self) -> "PlaywrightSessionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def get_session(self) -> BrowserSession:
        if self._session is not None:
            return self._session
        async with self._lock:
            if self._session is None:
                self._session = await self._start()
        return self._session

    async def _start(self) -> BrowserSession:
        self.launches += 1
        logger.info(f"Launching Chromium (headless={self.headless})")
        self._playwright = await self._playwright_factory().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.headless)

            options = {"user_agent": self.user_agent}
            if self.storage_state_path and Path(self.storage_state_path).exists():
                options["storage_state"] = self.storage_state_path
            context = await self._browser.new_context(**options)
            context.set_default_navigation_timeout(self.navigation_timeout_ms)

            await self.ensure_session_cookie(context)
        except Exception:
            logger.error("Browser startup failed; stopping the Playwright driver")
            await self._shutdown_driver()
            raise
        return BrowserSession(context, self.navigation_timeout_ms)

    async def _shutdown_driver(self) -> None:
        """Close the browser and stop the driver, whichever were started."""
        browser, self._browser = self._browser, None
        driver, self._playwright = self._playwright, None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug(f"Browser close failed: {e}")
        if driver is not None:
            await driver.stop()

    async def ensure_session_cookie(self, context) -> bool:
        """
        Add the session cookies unless the context already carries li_at.

        Returns:
            True when cookies were added
        """
        if self.credentials is None:
            return False
        cookies = self.credentials.browser_cookies()
        if not any(c["name"] == "li_at" for c in cookies):
            return False

        existing = await context.cookies(LINKEDIN_ORIGIN)
        if any(c.get("name") == "li_at" for c in existing):
            logger.debug("Browser context already has li_at; not injecting")
            return False

        present = {c.get("name") for c in existing}
        await context.add_cookies([c for c in cookies if c["name"] not in present])
        logger.info("Injected LinkedIn session cookie into browser context")
        return True

    async def close(self) -> None:
        async with self._lock:
            session, self._session = self._session, None
            if session is not None:
                await session.context.close()
            await self._shutdown_driver()
