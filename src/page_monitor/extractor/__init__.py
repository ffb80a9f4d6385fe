"""Content extraction from HTML pages and fetcher output."""

from page_monitor.extractor.element import ContentExtractor, css_selector, visible_text
from page_monitor.extractor.response import CanonicalResponse, parse_fetcher_output

__all__ = [
    "CanonicalResponse",
    "ContentExtractor",
    "css_selector",
    "parse_fetcher_output",
    "visible_text",
]
