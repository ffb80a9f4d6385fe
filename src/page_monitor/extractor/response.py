"""Tolerant parsing of a fetcher's structured output.

Worker processes write one JSON object to stdout, but diagnostic lines from
the worker's runtime can end up around it. The parser looks for the JSON
line, decodes it into the canonical ``{content, error, date}`` schema, and
falls back to a loose key lookup before giving up.
"""

import json
import logging
from datetime import datetime, timezone

from pydantic import BaseModel, TypeAdapter, ValidationError

from page_monitor.errors import ErrorCategory, classify_error
from page_monitor.logs import EngineLogger, describe_log_location
from page_monitor.models import FetchResult, utc_now

logger = logging.getLogger(__name__)

_LEGACY_NOT_FOUND_PREFIX = "No content found matching"

_datetime_adapter = TypeAdapter(datetime)


class CanonicalResponse(BaseModel):
    """Output schema of a fetcher."""

    content: str
    error: str | None = None
    date: str


def parse_date(value: object) -> datetime:
    """Parse an ISO-8601 timestamp, defaulting to now when unusable."""
    if not isinstance(value, str) or not value:
        return utc_now()
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        logger.debug("Unparseable date %r, using current time", value)
        return utc_now()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def find_json_candidate(text: str) -> str:
    """Pick the line most likely to hold the JSON payload."""
    lines = text.splitlines()
    if len(lines) > 1:
        for line in lines:
            line = line.strip()
            if line.startswith("{"):
                return line
    return text


def parse_fetcher_output(raw: str, log: EngineLogger | None = None) -> FetchResult:
    """Turn raw fetcher output into a :class:`FetchResult`."""
    log = log or logger
    text = raw.strip()
    if not text:
        log.warning("Received empty output")
        return FetchResult.failure("No content received from fetcher", ErrorCategory.NETWORK)

    candidate = find_json_candidate(text)
    if candidate is not text:
        log.debug("Multiple lines found in output, using JSON line: %s", candidate)

    try:
        response = CanonicalResponse.model_validate_json(candidate)
    except ValidationError as e:
        log.debug("Strict decode failed: %s", e)
        return _parse_loosely(candidate, text, e, log)

    log.debug("Successfully parsed response")
    return _to_result(response.content, response.error, parse_date(response.date))


def _parse_loosely(
    candidate: str, text: str, strict_error: ValidationError, log: EngineLogger
) -> FetchResult:
    try:
        data = json.loads(candidate)
    except ValueError as e:
        reason = str(e)
    else:
        if isinstance(data, dict):
            log.debug("JSON structure: %s", list(data.keys()))
            content = data.get("content")
            error = data.get("error")
            if isinstance(content, str):
                return _to_result(
                    content,
                    error if isinstance(error, str) else None,
                    parse_date(data.get("date")),
                )
            if isinstance(error, str):
                return FetchResult.failure(
                    f"Server error: {error}",
                    ErrorCategory.SERVER,
                    last_updated=parse_date(data.get("date")),
                )
        reason = _first_error(strict_error)

    log.error("Failed to parse fetcher output: %s\nRaw output: %s", reason, text)
    return FetchResult.failure(
        f"Failed to parse response: {reason}. "
        f"Check {describe_log_location(log)}. "
        f"Output: {text[:100]}",
        ErrorCategory.PARSING,
    )


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def _to_result(content: str, error: str | None, date: datetime) -> FetchResult:
    if error:
        return FetchResult(content="", error=classify_error(error), last_updated=date)
    if content.startswith(_LEGACY_NOT_FOUND_PREFIX):
        # Older fetchers reported a selector miss as content
        return FetchResult(
            content="",
            error=classify_error(content, ErrorCategory.NOT_FOUND),
            last_updated=date,
        )
    return FetchResult(content=content, last_updated=date)
