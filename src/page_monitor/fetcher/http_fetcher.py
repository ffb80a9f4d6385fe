"""Direct HTTP fetcher for static pages."""

import asyncio

import httpx

from page_monitor.config import EngineConfig, MonitorConfiguration
from page_monitor.errors import ErrorCategory, FetchError
from page_monitor.extractor.element import ContentExtractor
from page_monitor.fetcher.base import BaseFetcher, FetchPath
from page_monitor.logs import EngineLogger
from page_monitor.models import FetchResult
from page_monitor.utils.url_utils import get_base_domain, text_preview


class HttpFetcher(BaseFetcher):
    """Fetch a page over HTTP and extract the fragment without JavaScript."""

    path = FetchPath.DIRECT

    def __init__(self, engine: EngineConfig, log: EngineLogger | None = None):
        super().__init__(engine, log)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Initialize HTTP client."""
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self.engine.user_agent},
            follow_redirects=True,
            timeout=self.engine.timeouts.direct_request_s,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up HTTP client."""
        if self._client:
            await self._client.aclose()

    async def _fetch(self, config: MonitorConfiguration) -> FetchResult:
        html = await self.fetch_document(config.url)
        extractor = ContentExtractor(config.selector)
        content = extractor.extract(html, first_only=True)
        self.log.info("Content extracted: %s", text_preview(content))
        return FetchResult(content=content)

    async def fetch_document(self, url: str) -> str:
        """GET a page and return its body as text.

        Raises:
            FetchError: on transport errors, non-2xx statuses or bodies that
                are not UTF-8.
        """
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        self.log.info("Fetching URL: %s", url)
        resource_timeout = self.engine.timeouts.direct_resource_s
        try:
            response = await asyncio.wait_for(self._client.get(url), timeout=resource_timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"Timed out fetching content after {resource_timeout:g} seconds",
                ErrorCategory.TIMEOUT,
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching content: {e}", ErrorCategory.TIMEOUT) from e
        except httpx.ConnectError as e:
            raise FetchError(
                f"Could not connect to {get_base_domain(url)}: {e}", ErrorCategory.CONNECTION
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching content: {e}", ErrorCategory.NETWORK) from e

        self.log.info("Received HTTP response with status code: %d", response.status_code)
        if not response.is_success:
            raise FetchError(f"HTTP error: {response.status_code}", ErrorCategory.NETWORK)

        try:
            html = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FetchError(
                "Could not decode response data as UTF-8", ErrorCategory.PARSING
            ) from e

        self.log.debug("Received HTML content (length: %d characters)", len(html))
        return html
