"""URL and text helpers."""

from urllib.parse import urlparse

_SCHEMES = ("http://", "https://")


def has_http_scheme(url: str) -> bool:
    """Check if a URL starts with an http or https scheme."""
    return url.lower().startswith(_SCHEMES)


def is_valid_url(url: str) -> bool:
    """Check if a URL parses with an http(s) scheme and a host."""
    try:
        parsed = urlparse(url)
        # Accessing .port validates the port component
        parsed.port
    except ValueError:
        return False
    if any(ch.isspace() for ch in url):
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.hostname)


def get_base_domain(url: str) -> str:
    """Extract the domain from a URL."""
    return urlparse(url).netloc.lower()


def endpoint_url(base_url: str, path: str) -> str:
    """Append a path component to a service base URL."""
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return " ".join(text.split())


def text_preview(text: str, limit: int = 100) -> str:
    """Shorten text to at most ``limit`` characters, marking truncation."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."
