"""Utility functions."""

from page_monitor.utils.url_utils import (
    collapse_whitespace,
    endpoint_url,
    has_http_scheme,
    is_valid_url,
    text_preview,
)

__all__ = [
    "collapse_whitespace",
    "endpoint_url",
    "has_http_scheme",
    "is_valid_url",
    "text_preview",
]
