"""Error taxonomy and classification of raw error text."""

import re
from enum import Enum

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Stable category of a fetch failure."""

    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    AUTH = "auth"
    SERVER = "server"
    JAVASCRIPT = "javascript"
    NETWORK = "network"
    PARSING = "parsing"
    GENERIC = "generic"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def guidance(self) -> str:
        return _GUIDANCE[self]


_LABELS: dict[ErrorCategory, str] = {
    ErrorCategory.CONFIGURATION: "Configuration Error",
    ErrorCategory.NOT_FOUND: "Content Not Found",
    ErrorCategory.TIMEOUT: "Timed Out",
    ErrorCategory.CONNECTION: "Connection Error",
    ErrorCategory.AUTH: "Authentication Error",
    ErrorCategory.SERVER: "Server Error",
    ErrorCategory.JAVASCRIPT: "JavaScript Error",
    ErrorCategory.NETWORK: "Network Error",
    ErrorCategory.PARSING: "Parsing Error",
    ErrorCategory.GENERIC: "Error",
}

# Rich emoji codes
_ICONS: dict[ErrorCategory, str] = {
    ErrorCategory.CONFIGURATION: ":gear:",
    ErrorCategory.NOT_FOUND: ":mag:",
    ErrorCategory.TIMEOUT: ":hourglass:",
    ErrorCategory.CONNECTION: ":electric_plug:",
    ErrorCategory.AUTH: ":key:",
    ErrorCategory.SERVER: ":desktop_computer:",
    ErrorCategory.JAVASCRIPT: ":scroll:",
    ErrorCategory.NETWORK: ":globe_with_meridians:",
    ErrorCategory.PARSING: ":page_facing_up:",
    ErrorCategory.GENERIC: ":warning:",
}

_GUIDANCE: dict[ErrorCategory, str] = {
    ErrorCategory.CONFIGURATION: "Check the monitor settings: URL, selector and server options",
    ErrorCategory.NOT_FOUND: (
        "Check the selector in your browser's developer tools, "
        "or enable JavaScript rendering for dynamic pages"
    ),
    ErrorCategory.TIMEOUT: "The page took too long to load; try a shorter wait or try again later",
    ErrorCategory.CONNECTION: "Check your network connection and that the server is running",
    ErrorCategory.AUTH: "Check the API key configured for the extraction server",
    ErrorCategory.SERVER: "The extraction server reported a failure; check its logs",
    ErrorCategory.JAVASCRIPT: "Rendering failed; try a wait selector or a different load state",
    ErrorCategory.NETWORK: "Check the URL is accessible in a browser",
    ErrorCategory.PARSING: "The response could not be read; rerun with --verbose for details",
    ErrorCategory.GENERIC: "Rerun with --verbose for details",
}

_HTTP_5XX_RE = re.compile(r"\bHTTP(?: error)?:? 5\d\d\b", re.IGNORECASE)

# Checked in order; the first category with a matching needle or pattern wins.
# Needles match case-sensitively against the legacy message wording.
_CLASSIFICATION_RULES: list[tuple[ErrorCategory, tuple[str, ...], re.Pattern[str] | None]] = [
    (ErrorCategory.CONFIGURATION, ("Please enter", "must start with", "Invalid", "requires server mode"), None),
    (ErrorCategory.NOT_FOUND, ("No content found", "selector"), None),
    (ErrorCategory.TIMEOUT, ("Timed out",), None),
    (ErrorCategory.CONNECTION, ("Could not connect", "connection"), None),
    (ErrorCategory.AUTH, ("Authentication", "API key"), None),
    (ErrorCategory.SERVER, ("Server error",), _HTTP_5XX_RE),
    (ErrorCategory.JAVASCRIPT, ("JavaScript",), None),
]

COMPACT_MESSAGE_LENGTH = 50
FULL_MESSAGE_LENGTH = 100


class ClassifiedError(BaseModel):
    """A failure ready for presentation."""

    category: ErrorCategory
    message: str
    short_message: str
    guidance: str

    @property
    def label(self) -> str:
        return self.category.label

    @property
    def icon(self) -> str:
        return self.category.icon

    def display(self, compact: bool = False) -> str:
        """Short message truncated for a small or large display."""
        limit = COMPACT_MESSAGE_LENGTH if compact else FULL_MESSAGE_LENGTH
        if len(self.short_message) > limit:
            return self.short_message[:limit] + "..."
        return self.short_message


class FetchError(Exception):
    """A fetch failure raised inside the engine.

    ``category`` is ``None`` when the message comes from an external source
    (worker output, server body) and has to be classified from its text.
    """

    category: ErrorCategory | None = None

    def __init__(self, message: str, category: ErrorCategory | None = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category

    def classify(self) -> ClassifiedError:
        return classify_error(self.message, self.category)


def categorize(message: str) -> ErrorCategory:
    """Map raw error text to a category by priority-ordered substring match.

    Matching is case-sensitive, so browser codes such as
    ``net::ERR_INVALID_URL`` do not read as a settings problem. Text that
    only differs in case from a needle falls through to GENERIC.
    """
    for category, needles, pattern in _CLASSIFICATION_RULES:
        if any(needle in message for needle in needles):
            return category
        if pattern is not None and pattern.search(message):
            return category
    return ErrorCategory.GENERIC


def classify_error(message: str, category: ErrorCategory | None = None) -> ClassifiedError:
    """Build a presentable error from raw text.

    A known ``category`` is trusted as-is; otherwise the text is matched
    against the legacy message conventions.
    """
    if category is None:
        category = categorize(message)

    if category is ErrorCategory.TIMEOUT and "Timed out" in message:
        short_message = "Timed out loading JavaScript content"
    elif category is ErrorCategory.NOT_FOUND and "No content found" in message:
        short_message = "No content found with selector"
    else:
        short_message = message

    return ClassifiedError(
        category=category,
        message=message,
        short_message=short_message,
        guidance=category.guidance,
    )
