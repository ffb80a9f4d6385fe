"""Type-aware extraction of a value from matched HTML elements."""

import logging
import re

from bs4 import BeautifulSoup, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction
from soupsieve import SelectorSyntaxError

from page_monitor.errors import ErrorCategory, FetchError
from page_monitor.utils.url_utils import collapse_whitespace, text_preview

logger = logging.getLogger(__name__)

HTML_MARKER = ":html"
TEXT_MARKER = ":text"

_MARKER_RE = re.compile(r":(?:html|text)\b")

# Their strings never render as page text
_INVISIBLE_TAGS = frozenset({"script", "style", "noscript", "template"})
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def css_selector(selector: str) -> str:
    """Strip the ``:html`` / ``:text`` output markers from a selector."""
    return _MARKER_RE.sub("", selector).strip()


def not_found_message(selector: str, preview: str = "") -> str:
    message = f"No content found matching selector: {selector}"
    if preview:
        message += f". Page preview: {preview}"
    return message


def visible_text(element: Tag) -> str:
    """Rendered text of an element with whitespace collapsed.

    Strings are joined with a space so adjacent block elements such as
    list items stay separate words.
    """
    parts = []
    for string in element.find_all(string=True):
        if isinstance(string, _NON_TEXT_STRINGS):
            continue
        if _is_hidden(string, element):
            continue
        parts.append(str(string))
    return collapse_whitespace(" ".join(parts))


def _is_hidden(node, root: Tag) -> bool:
    for parent in node.parents:
        # A selector that targets a <script> itself still gets its text
        if parent is root:
            return False
        if parent.name in _INVISIBLE_TAGS:
            return True
    return False


class ContentExtractor:
    """Turn matched elements into the text shown to the user.

    Rules, first match wins:

    1. ``<img>`` yields its ``src`` attribute.
    2. ``<a>`` yields ``"text (href)"``.
    3. An element with child elements yields its inner markup when the
       selector carries ``:html`` and not ``:text``.
    4. Anything else yields its visible text.
    """

    def __init__(self, selector: str):
        self.selector = selector
        self.css = css_selector(selector)
        self.wants_html = HTML_MARKER in selector and TEXT_MARKER not in selector

    def extract_element(self, element: Tag) -> str:
        """Extract the value of a single matched element."""
        if element.name == "img":
            content = element.get("src") or ""
        elif element.name == "a":
            content = f"{visible_text(element)} ({element.get('href') or ''})"
        elif self.wants_html and element.find(True) is not None:
            content = element.decode_contents()
        else:
            content = visible_text(element)
        if isinstance(content, list):  # multi-valued attribute
            content = " ".join(content)
        return content.strip()

    def select(self, soup: BeautifulSoup) -> list[Tag]:
        """Select the elements matching the selector."""
        if not self.css:
            raise FetchError(
                f"HTML parsing error: selector '{self.selector}' has no CSS part",
                ErrorCategory.PARSING,
            )
        try:
            return soup.select(self.css)
        except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
            raise FetchError(
                f"HTML parsing error: invalid selector '{self.selector}': {e}",
                ErrorCategory.PARSING,
            ) from e

    def extract(self, html: str, first_only: bool = True) -> str:
        """Extract content from a whole document.

        Raises:
            FetchError: when the selector is unusable or matches nothing.
        """
        soup = BeautifulSoup(html, "lxml")
        elements = self.select(soup)
        logger.debug("Selected %d elements with selector: %s", len(elements), self.css)

        if not elements:
            body = soup.body or soup
            preview = text_preview(visible_text(body))
            raise FetchError(not_found_message(self.selector, preview), ErrorCategory.NOT_FOUND)

        if first_only:
            elements = elements[:1]

        values = [self.extract_element(element) for element in elements]
        return "\n".join(value for value in values if value)
