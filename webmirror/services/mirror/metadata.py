from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from webmirror.models.mirror.document import Metadata
from webmirror.services.mirror.document import Document

LINK_SELECTOR = "a"
IMAGE_SELECTOR = "img"


def extract(document: Document) -> Metadata:
    """Count the anchors and images in the whole document."""
    return Metadata(
        num_links=document.count(LINK_SELECTOR),
        num_images=document.count(IMAGE_SELECTOR),
    )


def merge(
    fresh: Metadata, prior: Optional[Metadata], now: Optional[datetime] = None
) -> Metadata:
    """Stamp *fresh* with the fetch time and carry the previous one forward.

    Only the immediately preceding fetch time is retained.  ``fetched_at``
    is kept strictly later than the previous fetch even when the clock has
    not advanced (or went backwards) between the two fetches.
    """
    fetched_at = now or datetime.now(timezone.utc)
    last_fetched_at = prior.fetched_at if prior is not None else None
    if last_fetched_at is not None and fetched_at <= last_fetched_at:
        fetched_at = last_fetched_at + timedelta(microseconds=1)
    return Metadata(
        num_links=fresh.num_links,
        num_images=fresh.num_images,
        fetched_at=fetched_at,
        last_fetched_at=last_fetched_at,
    )
