"""URL resolution and origin classification for mirrored pages.

Relative references follow the usual resolution rules against the page's
base URL: absolute (``https://host/x``), protocol-relative (``//host/x``),
root-relative (``/x``) and document-relative (``x`` or ``./x``).
"""

from __future__ import annotations

import logging
from urllib.parse import SplitResult, urljoin, urlsplit

from pydantic import HttpUrl, ValidationError

from webmirror.core.errors import InvalidURLError
from webmirror.services.mirror.document import Document

logger = logging.getLogger(__name__)

LOCAL_SCHEME = "file"


def normalize_url(url: str) -> str:
    """Validate an http(s) URL and return its normalised form.

    Raises:
        InvalidURLError: if *url* is not a well-formed http(s) URL.
    """
    try:
        return str(HttpUrl(url.strip()))
    except ValidationError as exc:
        raise InvalidURLError(f"{url!r} is not a valid URL") from exc


def _host(parts: SplitResult) -> str:
    """Return ``host[:port]`` in lower case; raises ValueError on a bad port."""
    host = (parts.hostname or "").lower()
    port = parts.port
    return f"{host}:{port}" if port is not None else host


def determine_base_url(page_url: str, document: Document) -> str:
    """Return the URL relative references in *document* resolve against.

    A ``<base href>`` wins when present (it may itself be relative to the
    page URL); otherwise the base is the page URL's directory.
    """
    href = document.first_attr("base[href]", "href")
    if href and href.strip():
        try:
            return urljoin(page_url, href.strip())
        except ValueError as exc:
            logger.debug("Ignoring invalid <base href=%r> on %s: %s", href, page_url, exc)
    return urljoin(page_url, ".")


def resolve_and_classify(base_url: str, raw_url: str, page_url: str) -> tuple[str, bool]:
    """Resolve *raw_url* against *base_url* and classify its origin.

    Returns ``(absolute_url, same_origin)``.  ``same_origin`` holds when the
    resolved host matches the host of *page_url*, which must be the final
    (post-redirect) URL of the fetched page.  ``file:`` references are
    already local and count as same-origin.

    Raises:
        InvalidURLError: if *raw_url* cannot be parsed.
    """
    raw_url = raw_url.strip()
    try:
        if urlsplit(raw_url).scheme.lower() == LOCAL_SCHEME:
            return raw_url, True
        absolute = urljoin(base_url, raw_url)
        resolved = urlsplit(absolute)
        same_origin = _host(resolved) == _host(urlsplit(page_url))
    except ValueError as exc:
        raise InvalidURLError(f"invalid asset URL {raw_url!r}: {exc}") from exc
    if resolved.scheme not in ("http", "https") or not resolved.hostname:
        return absolute, False
    return absolute, same_origin


def is_local_reference(url: str) -> bool:
    try:
        return urlsplit(url.strip()).scheme.lower() == LOCAL_SCHEME
    except ValueError:
        return False
