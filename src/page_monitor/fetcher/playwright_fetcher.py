"""Playwright-based page rendering for the local extraction worker."""

import asyncio
import logging

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from page_monitor.config import EngineConfig
from page_monitor.errors import ErrorCategory, FetchError
from page_monitor.models import WaitFor

logger = logging.getLogger(__name__)

DEFAULT_LOAD_STATE = "networkidle"
_SELECTOR_WAIT_MS = 10000
_CHROMIUM_ARGS = ("--no-sandbox", "--disable-dev-shm-usage")
_VIEWPORT = {"width": 1280, "height": 720}


class PlaywrightFetcher:
    """Render pages in headless Chromium and return the resulting HTML."""

    def __init__(self, engine: EngineConfig):
        self.engine = engine
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self):
        """Start Playwright and open a headless Chromium context."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True, args=list(_CHROMIUM_ARGS)
            )
            self._context = await self._browser.new_context(
                user_agent=self.engine.user_agent, viewport=_VIEWPORT
            )
        except Exception:
            await self._shutdown()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self._shutdown()

    async def _shutdown(self) -> None:
        # Innermost first: context, browser, then the driver
        for closer in (
            self._context and self._context.close,
            self._browser and self._browser.close,
            self._playwright and self._playwright.stop,
        ):
            if closer:
                await closer()
        self._context = self._browser = self._playwright = None

    async def render(self, url: str, timeout_s: float, wait_for: WaitFor | None = None) -> str:
        """Load ``url``, honour the wait instructions and return the DOM as HTML.

        Raises:
            FetchError: when navigation fails or the page answers with an
                error status.
        """
        if not self._context:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        wait_for = wait_for or WaitFor()
        load_state = wait_for.load_state or DEFAULT_LOAD_STATE

        page = await self._context.new_page()
        try:
            logger.debug("Navigating to %s (wait until %s)", url, load_state)
            try:
                response = await page.goto(
                    url, wait_until=load_state, timeout=timeout_s * 1000
                )
            except Exception as e:
                raise FetchError(
                    f"JavaScript rendering error: {e}", ErrorCategory.JAVASCRIPT
                ) from e

            if response is not None and not response.ok:
                raise FetchError(f"HTTP error: {response.status}", ErrorCategory.NETWORK)

            if wait_for.wait_for_selector:
                try:
                    await page.wait_for_selector(
                        wait_for.wait_for_selector, timeout=_SELECTOR_WAIT_MS
                    )
                except Exception:
                    # Extraction still runs and reports a miss if needed
                    logger.debug(
                        "Wait selector '%s' not found", wait_for.wait_for_selector, exc_info=True
                    )

            if wait_for.wait_time:
                await asyncio.sleep(wait_for.wait_time)

            return await page.content()
        finally:
            try:
                await page.close()
            except Exception:
                logger.debug("Failed to close page", exc_info=True)
