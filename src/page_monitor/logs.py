"""Invocation-scoped logging."""

import logging
import uuid

logger = logging.getLogger("page_monitor")

EngineLogger = logging.Logger | logging.LoggerAdapter


class InvocationLogger(logging.LoggerAdapter):
    """Prefix every line with the id of the fetch that produced it."""

    def process(self, msg, kwargs):
        return f"[{self.extra['invocation_id']}] {msg}", kwargs

    @property
    def invocation_id(self) -> str:
        return self.extra["invocation_id"]


def new_invocation_id() -> str:
    return uuid.uuid4().hex[:8]


def get_invocation_logger(
    invocation_id: str | None = None, base: logging.Logger | None = None
) -> InvocationLogger:
    """Create a logger adapter keyed by ``invocation_id``."""
    return InvocationLogger(
        base or logger, {"invocation_id": invocation_id or new_invocation_id()}
    )


def describe_log_location(log: EngineLogger) -> str:
    """Where a user can find the full diagnostics for this logger."""
    if isinstance(log, InvocationLogger):
        return f"logs for invocation {log.invocation_id}"
    return "logs"
