"""Fetch paths: direct HTTP or delegated extraction."""

from page_monitor.fetcher.base import BaseFetcher, FetchPath
from page_monitor.fetcher.http_fetcher import HttpFetcher
from page_monitor.fetcher.server_fetcher import ServerFetcher

__all__ = [
    "BaseFetcher",
    "FetchPath",
    "HttpFetcher",
    "ServerFetcher",
]
