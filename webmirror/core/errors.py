"""Error taxonomy for the mirroring pipeline.

Every component wraps the failure it observes with a short description of
the operation, so a message reads as a chain::

    failed to process HTML response: failed to save asset: [Errno 28] ...

Failures inside a per-URL pipeline are reported through ``FetchResult.error``
and never abort sibling fetches.
"""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for every error raised by the mirroring pipeline."""


class InvalidURLError(MirrorError, ValueError):
    """Raised when a URL cannot be parsed or is not an http(s) URL."""


class FetchError(MirrorError):
    """Raised when the remote side cannot produce a usable HTML page."""


class TransportError(FetchError):
    """Network failure, timeout, or protocol error while requesting."""


class BadStatusError(FetchError):
    """Raised for HTTP status codes outside the 2xx range."""

    def __init__(self, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"bad HTTP status code: {status_code}")


class UnsupportedContentTypeError(FetchError):
    """Raised when the response is not an HTML document."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"response content type expected HTML got {content_type!r}")


class ParseError(FetchError):
    """Raised when the markup cannot be parsed into a document."""


class StorageError(MirrorError):
    """Raised on filesystem failures inside the store."""


class DocumentNameCollisionError(StorageError):
    """Raised when two different page URLs map to the same stored name."""

    def __init__(self, doc_name: str, url: str, other_url: str) -> None:
        self.doc_name = doc_name
        self.url = url
        self.other_url = other_url
        super().__init__(
            f"document name {doc_name!r} for {url} is already used by {other_url}"
        )


class SerializationError(MirrorError):
    """Raised when metadata cannot be encoded or decoded."""
