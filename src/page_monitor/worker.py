"""Local extraction worker.

Runs one extraction and reports it as a single canonical JSON line
(``{"content", "error", "date"}``) on stdout. Diagnostics go to stderr so the
parent engine can keep them apart from the payload.
"""

import logging

from page_monitor.config import EngineConfig
from page_monitor.errors import FetchError
from page_monitor.extractor.element import ContentExtractor
from page_monitor.extractor.response import CanonicalResponse
from page_monitor.fetcher.http_fetcher import HttpFetcher
from page_monitor.models import ExtractionRequest, utc_now

logger = logging.getLogger(__name__)


async def load_page(request: ExtractionRequest, engine: EngineConfig) -> str:
    """Fetch the page HTML, rendering it in a browser when requested."""
    if request.render_js:
        # Imported lazily: only rendering needs a browser
        from page_monitor.fetcher.playwright_fetcher import PlaywrightFetcher

        async with PlaywrightFetcher(engine) as renderer:
            return await renderer.render(request.url, request.timeout, request.wait_for)

    async with HttpFetcher(engine, logger) as fetcher:
        return await fetcher.fetch_document(request.url)


async def run_extraction(
    request: ExtractionRequest, engine: EngineConfig | None = None
) -> CanonicalResponse:
    """Perform one extraction, reporting failures inside the response."""
    engine = engine or EngineConfig()
    logger.debug("Starting extraction: %s", request.model_dump(exclude_none=True))
    try:
        html = await load_page(request, engine)
        extractor = ContentExtractor(request.selector)
        content = extractor.extract(html, first_only=request.first_only)
    except FetchError as e:
        logger.debug("Extraction failed: %s", e.message)
        return CanonicalResponse(content="", error=e.message, date=utc_now().isoformat())

    logger.debug("Content extracted, length: %d", len(content))
    return CanonicalResponse(content=content, error=None, date=utc_now().isoformat())
