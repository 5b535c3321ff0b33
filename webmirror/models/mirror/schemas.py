from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, HttpUrl


class MirrorRequest(BaseModel):
    """Request body for POST /mirror."""

    url: HttpUrl
    mirror: bool = False


class MetadataResponse(BaseModel):
    """API response shape for a stored metadata record."""

    url: str
    num_links: int
    num_images: int
    fetched_at: datetime
    last_fetched_at: Optional[datetime] = None
