"""HTML document adapter.

The rest of the pipeline only talks to parsed pages through
:class:`Document`: query nodes with a CSS selector, read and write attributes
on the returned nodes, and serialize the tree back to bytes.
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import Tag

from webmirror.core.errors import ParseError


class Document:
    def __init__(self, soup: BeautifulSoup) -> None:
        self._soup = soup

    @classmethod
    def parse(cls, data: bytes) -> Document:
        try:
            soup = BeautifulSoup(data, "html.parser")
        except ParserRejectedMarkup as exc:
            raise ParseError(f"failed to parse HTML document: {exc}") from exc
        return cls(soup)

    def select(self, selector: str) -> list[Tag]:
        return list(self._soup.select(selector))

    def count(self, selector: str) -> int:
        return len(self._soup.select(selector))

    def first_attr(self, selector: str, name: str) -> Optional[str]:
        """Return attribute *name* of the first node matching *selector*."""
        node = self._soup.select_one(selector)
        if node is None:
            return None
        return self.get_attr(node, name)

    @staticmethod
    def get_attr(node: Tag, name: str) -> Optional[str]:
        value = node.get(name)
        if value is None:
            return None
        # bs4 returns multi-valued attributes (class, rel, ...) as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    @staticmethod
    def set_attr(node: Tag, name: str, value: str) -> None:
        node[name] = value

    def serialize(self) -> bytes:
        return self._soup.encode("utf-8")
