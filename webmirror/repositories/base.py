"""Base class for the on-disk stores of mirrored pages.

A store is bound to a root directory and to the *document name* of one page,
derived from the page's final (post-redirect) URL::

    https://Example.com/blog/post?id=7#top  ->  example.com_blog_post+id_7

Files for that page live at ``<root>/<doc>.html``, ``<root>/<doc>.json`` and
under ``<root>/<doc>/``.  The fragment is dropped, so URLs differing only
in their fragment share a document name.

Extending for a new layout:
    1. Subclass ``BaseRepository``.
    2. Build instances with ``for_url()`` so every store agrees on the key.
"""

from __future__ import annotations

import re
from abc import ABC
from pathlib import Path
from typing import TypeVar, Union
from urllib.parse import urlsplit

T = TypeVar("T", bound="BaseRepository")

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._+-]+")
_MAX_NAME_LENGTH = 200


def sanitize_name(name: str) -> str:
    """Turn *name* into a single safe path segment."""
    name = _UNSAFE_CHARS_RE.sub("_", name).strip("_")
    if name.startswith("."):
        name = "_" + name[1:]
    return name[:_MAX_NAME_LENGTH] or "_"


def document_name(url: str) -> str:
    """Derive the stored document name from a page URL: host, path, query."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port is not None:
        host += f"_{parts.port}"
    name = host + parts.path.rstrip("/")
    if parts.query:
        name += "+" + parts.query
    return sanitize_name(name.replace("/", "_"))


class BaseRepository(ABC):
    """Base class that binds a store to its root directory and document.

    The root directory is always passed in explicitly; there is no
    process-wide default.
    """

    def __init__(self, root_dir: Union[str, Path], doc_name: str) -> None:
        self._root = Path(root_dir).resolve()
        self._doc_name = doc_name

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def for_url(cls: type[T], root_dir: Union[str, Path], url: str) -> T:
        """Instantiate the store for the page at *url*.

        Usage::

            store = FileStore.for_url(settings.root_store_dir, str(response.url))
        """
        return cls(root_dir, document_name(url))

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def doc_name(self) -> str:
        return self._doc_name
