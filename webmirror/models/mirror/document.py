from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Metadata(BaseModel):
    """Per-page facts persisted next to the mirrored HTML document.

    ``fetched_at`` is only absent on freshly extracted counts, before the
    merge with the previously stored value.  On disk the record uses the
    ``NumLinks`` / ``NumImages`` / ``FetchedAt`` / ``LastFetchedAt`` keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    num_links: int = Field(0, ge=0, alias="NumLinks")
    num_images: int = Field(0, ge=0, alias="NumImages")
    fetched_at: Optional[datetime] = Field(None, alias="FetchedAt")
    last_fetched_at: Optional[datetime] = Field(None, alias="LastFetchedAt")

    @field_validator("fetched_at", "last_fetched_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_fetch_order(self) -> Metadata:
        if self.last_fetched_at is not None and self.fetched_at is not None:
            if self.last_fetched_at >= self.fetched_at:
                raise ValueError("LastFetchedAt must be earlier than FetchedAt")
        return self


class EmbeddedAsset(BaseModel):
    """A same-origin resource referenced by a mirrored page.

    ``path`` is assigned by the rewriter when the page is rewritten; ``data``
    is filled in by the download phase and consumed once by the store.
    """

    url: str
    path: Optional[Path] = None
    data: Optional[bytes] = None


class FetchResult(BaseModel):
    """Outcome of one fetch, handed to completion callbacks."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str
    metadata: Optional[Metadata] = None
    response: Optional[httpx.Response] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
