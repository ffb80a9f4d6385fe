"""Base class for fetch paths."""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from page_monitor.config import EngineConfig, MonitorConfiguration
from page_monitor.errors import FetchError
from page_monitor.logs import EngineLogger
from page_monitor.models import FetchResult

logger = logging.getLogger(__name__)


class FetchPath(str, Enum):
    """How page content is obtained."""

    DIRECT = "direct"
    DELEGATED = "delegated"


class BaseFetcher(ABC):
    """Abstract base class for fetch paths.

    Subclasses implement :meth:`_fetch`, raising :class:`FetchError` on
    failure; :meth:`fetch` turns those into a failed :class:`FetchResult`.
    """

    path: FetchPath

    def __init__(self, engine: EngineConfig, log: EngineLogger | None = None):
        self.engine = engine
        self.log = log or logger

    async def fetch(self, config: MonitorConfiguration) -> FetchResult:
        """Fetch the configured fragment."""
        try:
            return await self._fetch(config)
        except FetchError as e:
            self.log.info("%s fetch failed: %s", self.path.value, e.message)
            return FetchResult(error=e.classify())

    @abstractmethod
    async def _fetch(self, config: MonitorConfiguration) -> FetchResult:
        """Fetch and extract, raising FetchError on failure."""

    @abstractmethod
    async def __aenter__(self):
        """Async context manager entry."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        pass
