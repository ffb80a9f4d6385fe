"""Tests for fetch dispatch."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from page_monitor.config import MonitorConfiguration, WaitOptions
from page_monitor.dispatcher import FetchDispatcher, select_path
from page_monitor.errors import ErrorCategory
from page_monitor.fetcher import FetchPath


class TestSelectPath:
    def test_direct(self) -> None:
        assert select_path(MonitorConfiguration()) is FetchPath.DIRECT

    @pytest.mark.parametrize("use_javascript", [True, False])
    def test_delegated(self, use_javascript: bool) -> None:
        config = MonitorConfiguration(use_server=True, use_javascript=use_javascript)
        assert select_path(config) is FetchPath.DELEGATED


@pytest.mark.asyncio
class TestFetchDispatcher:
    async def test_direct_fetch(self) -> None:
        config = MonitorConfiguration(url="https://example.com", selector="h1")
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/").mock(return_value=httpx.Response(200, text="<h1>Example Domain</h1>"))
            result = await FetchDispatcher().fetch(config)

        assert result.error is None
        assert result.content == "Example Domain"

    @pytest.mark.parametrize(
        ("url", "selector"),
        [("https://example.com", "h1"), ("", ""), ("ftp://example.com", "div")],
    )
    async def test_javascript_without_server_never_touches_network(
        self, url: str, selector: str
    ) -> None:
        config = MonitorConfiguration(url=url, selector=selector, use_javascript=True)
        with respx.mock() as mock:
            result = await FetchDispatcher().fetch(config)

        assert mock.calls.call_count == 0
        assert result.content == ""
        assert result.error.category is ErrorCategory.CONFIGURATION
        assert "requires server mode" in result.error.message

    async def test_padded_url_is_fetched(self) -> None:
        config = MonitorConfiguration(url="  https://example.com  ", selector=" h1 ")
        with respx.mock(base_url="https://example.com") as mock:
            route = mock.get("/").mock(
                return_value=httpx.Response(200, text="<h1>Example Domain</h1>")
            )
            result = await FetchDispatcher().fetch(config)

        assert route.called
        assert result.error is None
        assert result.content == "Example Domain"

    async def test_padded_server_url_is_stripped(self) -> None:
        config = MonitorConfiguration(
            url=" https://example.com ",
            selector=" h1 ",
            use_server=True,
            server_url=" http://127.0.0.1:5000 ",
        )
        with respx.mock(base_url="http://127.0.0.1:5000") as mock:
            route = mock.post("/extract").mock(
                return_value=httpx.Response(200, json={"results": [{"text": "Example Domain"}]})
            )
            result = await FetchDispatcher().fetch(config)

        assert result.content == "Example Domain"
        body = json.loads(route.calls.last.request.content)
        assert body["url"] == "https://example.com"
        assert body["selector"] == "h1"

    async def test_invalid_wait_options(self) -> None:
        config = MonitorConfiguration(
            use_server=True,
            use_javascript=True,
            wait_options=WaitOptions(enabled=True, wait_for_selector="5"),
        )
        result = await FetchDispatcher().fetch(config)
        assert result.error.category is ErrorCategory.CONFIGURATION

    async def test_delegated_fetch(self, server_config: MonitorConfiguration) -> None:
        with respx.mock(base_url="http://127.0.0.1:5000") as mock:
            mock.post("/extract").mock(
                return_value=httpx.Response(200, json={"results": [{"text": "Example Domain"}]})
            )
            result = await FetchDispatcher().fetch(server_config)

        assert result.content == "Example Domain"

    async def test_unexpected_errors_become_results(self) -> None:
        config = MonitorConfiguration(url="https://example.com", selector="h1")
        with patch(
            "page_monitor.fetcher.http_fetcher.HttpFetcher._fetch",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            result = await FetchDispatcher().fetch(config)

        assert result.error.category is ErrorCategory.GENERIC
        assert result.error.message == "Unexpected error: boom"

    async def test_logs_are_tagged_with_invocation(self, caplog: pytest.LogCaptureFixture) -> None:
        base = logging.getLogger("dispatch_tests")
        config = MonitorConfiguration(url="", selector="h1")
        with caplog.at_level(logging.INFO, logger="dispatch_tests"):
            await FetchDispatcher(base_logger=base).fetch(config, invocation_id="inv00001")

        assert caplog.records
        assert all(record.getMessage().startswith("[inv00001] ") for record in caplog.records)


class TestFetchSync:
    def test_blocking_wrapper(self) -> None:
        config = MonitorConfiguration(url="https://example.com", selector="h1")
        with respx.mock(base_url="https://example.com") as mock:
            mock.get("/").mock(return_value=httpx.Response(200, text="<h1>Example Domain</h1>"))
            result = FetchDispatcher().fetch_sync(config)

        assert result.content == "Example Domain"
