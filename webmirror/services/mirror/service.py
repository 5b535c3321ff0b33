from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from webmirror.core.config import MirrorMode
from webmirror.core.errors import FetchError, MirrorError
from webmirror.models.mirror.document import Metadata
from webmirror.repositories.mirror.store import FileStore
from webmirror.services.mirror.fetcher import Fetcher
from webmirror.services.mirror.urls import normalize_url
from webmirror.workers.transport import ThrottledTransport

logger = logging.getLogger(__name__)


class MirrorService:
    """Business logic for mirroring pages and reading stored metadata."""

    def __init__(
        self,
        transport: ThrottledTransport,
        root_dir: Union[str, Path],
        mirror_mode: MirrorMode = MirrorMode.FILTERED,
    ) -> None:
        self._transport = transport
        self._root_dir = Path(root_dir)
        self._mirror_mode = mirror_mode

    async def get_metadata(self, url: str) -> Optional[Metadata]:
        """Return the stored metadata for *url*, or ``None`` if not stored.

        The lookup uses *url* itself; a page stored under the URL it was
        redirected to is only found through that final URL.
        """
        return await FileStore.for_url(self._root_dir, normalize_url(url)).load_metadata()

    async def store_metadata(self, url: str, mirror: bool = False) -> Metadata:
        """Fetch *url*, store the page (and its assets when *mirror* is set).

        Returns the metadata as it was written to disk.

        Raises:
            InvalidURLError: *url* is not a valid http(s) URL.
            FetchError: the page could not be fetched or parsed.
            StorageError, SerializationError: the page could not be stored.
        """
        fetcher = Fetcher(
            self._transport,
            self._root_dir,
            mirror=mirror,
            mirror_mode=self._mirror_mode,
        )
        result = await fetcher.submit(url)
        if result.error is not None:
            raise result.error
        return result.metadata

    async def background_collect(self, url: str) -> None:
        """Fire-and-forget wrapper for ``store_metadata``.

        Catches and logs all exceptions; FastAPI cannot propagate background
        task exceptions to the original response.
        """
        try:
            await self.store_metadata(url)
        except FetchError as exc:
            logger.error("Background fetch failed for %s: %s", url, exc)
        except MirrorError as exc:
            logger.error("Background mirror failed for %s: %s", url, exc)
        except Exception as exc:
            logger.exception("Unexpected error in background_collect for %s: %s", url, exc)
