"""Top-level fetch policy: validate, pick a fetch path, return one result."""

import asyncio
import logging

from page_monitor.config import EngineConfig, MonitorConfiguration
from page_monitor.errors import ErrorCategory
from page_monitor.fetcher import BaseFetcher, FetchPath, HttpFetcher, ServerFetcher
from page_monitor.logs import get_invocation_logger
from page_monitor.models import FetchResult
from page_monitor.validation import validate_config

logger = logging.getLogger(__name__)

_FETCHERS: dict[FetchPath, type[BaseFetcher]] = {
    FetchPath.DIRECT: HttpFetcher,
    FetchPath.DELEGATED: ServerFetcher,
}


def select_path(config: MonitorConfiguration) -> FetchPath:
    """Choose how to obtain content for a validated configuration."""
    if config.use_server:
        return FetchPath.DELEGATED
    return FetchPath.DIRECT


class FetchDispatcher:
    """Run fetch invocations.

    Holds no per-invocation state: every call validates its configuration,
    gets its own logger and fetcher, and returns a :class:`FetchResult`
    instead of raising.
    """

    def __init__(self, engine: EngineConfig | None = None, base_logger: logging.Logger | None = None):
        self.engine = engine or EngineConfig()
        self.base_logger = base_logger or logging.getLogger("page_monitor")

    async def fetch(self, config: MonitorConfiguration, invocation_id: str | None = None) -> FetchResult:
        """Fetch the content described by ``config``."""
        log = get_invocation_logger(invocation_id, self.base_logger)
        log.info("Starting content fetch")
        log.info("URL: %s", config.url)
        log.info("Selector: %s", config.selector)
        log.info("JavaScript requested: %s, server mode: %s", config.use_javascript, config.use_server)

        problem = validate_config(config)
        if problem:
            log.warning("Invalid configuration: %s", problem)
            return FetchResult.failure(problem, ErrorCategory.CONFIGURATION)

        path = select_path(config)
        log.debug("Using %s fetch path", path.value)
        fetcher = _FETCHERS[path](self.engine, log)
        try:
            async with fetcher:
                result = await fetcher.fetch(config)
        except Exception as e:
            log.exception("Unexpected error during fetch")
            return FetchResult.failure(f"Unexpected error: {e}", ErrorCategory.GENERIC)

        if result.error:
            log.info("Fetch failed (%s): %s", result.error.category.value, result.error.message)
        else:
            log.info("Fetch succeeded (%d characters)", len(result.content))
        return result

    def fetch_sync(self, config: MonitorConfiguration, invocation_id: str | None = None) -> FetchResult:
        """Blocking wrapper around :meth:`fetch` for callers without an event loop."""
        return asyncio.run(self.fetch(config, invocation_id))
