import copy
import logging
import re
from typing import Any, Iterable, Optional, Protocol

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class DocumentTree(Protocol):
    """Read-only view of a parsed HTML document. Facet extractors only see this."""

    def select_all(self, selector: str) -> list[Any]:
        ...

    def attr(self, node: Any, name: str) -> Optional[str]:
        ...

    def text(self, node: Any) -> str:
        ...

    def root(self) -> Any:
        ...

    def without(self, selectors: Iterable[str]) -> "DocumentTree":
        """Return a working copy with every node matching `selectors` removed."""
        ...


def clean_text(raw: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return re.sub(r"\s+", " ", raw).strip()


class SoupDocument:
    """DocumentTree backed by BeautifulSoup + lxml."""

    def __init__(self, soup: BeautifulSoup):
        self._soup = soup

    def select_all(self, selector: str) -> list[Any]:
        return self._soup.select(selector)

    def attr(self, node: Any, name: str) -> Optional[str]:
        value = node.get(name)
        if value is None:
            return None
        # multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    def text(self, node: Any) -> str:
        # <script>/<style> hold their content in special string types
        if node.name in ("script", "style"):
            return node.string or ""
        return node.get_text()

    def root(self) -> Any:
        return self._soup

    def without(self, selectors: Iterable[str]) -> "SoupDocument":
        working = copy.copy(self._soup)
        for node in working.select(", ".join(selectors)):
            node.extract()
        return SoupDocument(working)


def parse_html(html: str) -> SoupDocument:
    """
    Parse raw HTML into a read-only document tree.
    Never raises: markup lxml cannot handle degrades to an empty document.
    """
    try:
        return SoupDocument(BeautifulSoup(html or "", "lxml"))
    except Exception as exc:
        logger.warning("HTML parse failed, using empty document: %s", exc)
        return SoupDocument(BeautifulSoup("", "lxml"))
