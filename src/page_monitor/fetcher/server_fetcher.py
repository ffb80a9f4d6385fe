"""Delegated extraction through an external extraction service.

The service is reached over HTTP (``POST {server_url}/extract``) or, when the
engine is configured with a worker command, by spawning a local worker that
performs the same extraction and prints the canonical output schema.
"""

import asyncio

import httpx
from pydantic import ValidationError

from page_monitor.config import EngineConfig, MonitorConfiguration
from page_monitor.errors import ErrorCategory, FetchError
from page_monitor.extractor.response import parse_fetcher_output
from page_monitor.fetcher.base import BaseFetcher, FetchPath
from page_monitor.logs import EngineLogger
from page_monitor.models import (
    ExtractionRequest,
    ExtractionResponseEnvelope,
    FetchResult,
    WaitFor,
)
from page_monitor.process import ProcessInvocation, run_process
from page_monitor.utils.url_utils import endpoint_url, get_base_domain

_AUTH_STATUSES = (401, 403)


def build_request(
    config: MonitorConfiguration, timeout: int = 45, max_wait_time: float = 15.0
) -> ExtractionRequest:
    """Build the extraction request for a validated configuration."""
    request = ExtractionRequest(
        url=config.url,
        selector=config.selector,
        timeout=timeout,
        first_only=not config.fetch_all_matches,
    )
    if config.use_javascript:
        request.render_js = True
        options = config.wait_options
        if options.enabled:
            request.wait_for = WaitFor(
                load_state=options.load_state or None,
                wait_for_selector=options.wait_for_selector.strip() or None,
                wait_time=min(max(options.additional_wait_time, 0.0), max_wait_time),
            )
    return request


def worker_arguments(request: ExtractionRequest) -> list[str]:
    """Serialize a request as command-line arguments of the worker."""
    args = [
        "--url", request.url,
        "--selector", request.selector,
        "--timeout", str(request.timeout),
    ]
    if request.render_js:
        args.append("--render-js")
    if not request.first_only:
        args.append("--all-matches")
    if request.wait_for:
        if request.wait_for.load_state:
            args += ["--load-state", request.wait_for.load_state]
        if request.wait_for.wait_for_selector:
            args += ["--wait-for-selector", request.wait_for.wait_for_selector]
        if request.wait_for.wait_time:
            args += ["--wait-time", f"{request.wait_for.wait_time:g}"]
    return args


def join_results(envelope: ExtractionResponseEnvelope) -> str:
    """Join each result's text (or markup when it has none) with newlines."""
    parts = []
    for item in envelope.results:
        if item.text:
            parts.append(item.text)
        elif item.html:
            parts.append(item.html)
    return "\n".join(parts)


class ServerFetcher(BaseFetcher):
    """Delegate fetching and extraction to the extraction service."""

    path = FetchPath.DELEGATED

    def __init__(self, engine: EngineConfig, log: EngineLogger | None = None):
        super().__init__(engine, log)
        self._client: httpx.AsyncClient | None = None

    @property
    def uses_worker(self) -> bool:
        return bool(self.engine.worker_command)

    async def __aenter__(self):
        """Initialize HTTP client unless a local worker is used."""
        if not self.uses_worker:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.engine.user_agent},
                timeout=self.engine.timeouts.server_request_s,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up HTTP client."""
        if self._client:
            await self._client.aclose()

    async def _fetch(self, config: MonitorConfiguration) -> FetchResult:
        request = build_request(
            config,
            timeout=self.engine.timeouts.extraction_timeout_s,
            max_wait_time=self.engine.max_wait_time_s,
        )
        if self.uses_worker:
            return await self._extract_with_worker(request)
        return await self._extract_with_server(config, request)

    async def _extract_with_worker(self, request: ExtractionRequest) -> FetchResult:
        command, *base_args = self.engine.worker_command
        invocation = ProcessInvocation(
            command=command,
            args=[*base_args, *worker_arguments(request)],
            timeout_ms=self.engine.timeouts.worker_timeout_ms,
        )
        self.log.info("Running local worker: %s", command)
        outcome = await run_process(invocation, self.log)
        output = outcome.stdout.decode("utf-8", errors="replace")
        self.log.debug("Raw output: %s", output)
        return parse_fetcher_output(output, self.log)

    async def _extract_with_server(
        self, config: MonitorConfiguration, request: ExtractionRequest
    ) -> FetchResult:
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        extract_url = endpoint_url(config.server_url, "extract")
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = config.api_key
            self.log.debug("Added API key to request")

        self.log.info("Sending request to extraction server at %s", extract_url)
        resource_timeout = self.engine.timeouts.server_resource_s
        try:
            response = await asyncio.wait_for(
                self._client.post(extract_url, json=request.to_payload(), headers=headers),
                timeout=resource_timeout,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"Timed out waiting for extraction server after {resource_timeout:g} seconds",
                ErrorCategory.TIMEOUT,
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out waiting for extraction server: {e}", ErrorCategory.TIMEOUT
            ) from e
        except httpx.ConnectError as e:
            raise FetchError(
                f"Could not connect to extraction server at {get_base_domain(extract_url)}: {e}",
                ErrorCategory.CONNECTION,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error querying server: {e}", ErrorCategory.NETWORK) from e

        self.log.info("Received HTTP response with status code: %d", response.status_code)
        if not response.is_success:
            message = self._error_message(response)
            self.log.warning("Server error: %s", message)
            category = (
                ErrorCategory.AUTH
                if response.status_code in _AUTH_STATUSES
                else ErrorCategory.SERVER
            )
            raise FetchError(message, category)

        try:
            envelope = ExtractionResponseEnvelope.model_validate_json(response.content)
        except ValidationError as e:
            self.log.error("Invalid JSON response format: %s", e)
            raise FetchError("Invalid response format from server", ErrorCategory.PARSING) from e

        self.log.info("Received %d results from server", len(envelope.results))
        if not envelope.results:
            raise FetchError(
                f"No content found matching selector: {config.selector}",
                ErrorCategory.NOT_FOUND,
            )

        content = join_results(envelope)
        if not content:
            raise FetchError("Results contained no text content", ErrorCategory.PARSING)
        return FetchResult(content=content)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Use the body's ``error`` field when the server sent one."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
            return data["error"]
        return f"HTTP error: {response.status_code}"
