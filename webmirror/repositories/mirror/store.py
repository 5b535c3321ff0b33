from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

import aiofiles
import aiofiles.os

from webmirror.core.errors import SerializationError, StorageError
from webmirror.models.mirror.document import EmbeddedAsset, Metadata
from webmirror.repositories.base import BaseRepository, sanitize_name

logger = logging.getLogger(__name__)

# sanitize_name never yields a leading ".", so no URL path maps here
CONFLICTS_DIR = ".conflicts"


class FileStore(BaseRepository):
    """Filesystem store for one mirrored page.

    Layout under the root directory:

    - ``<doc>.html`` - the (rewritten) HTML document
    - ``<doc>.json`` - the page metadata
    - ``<doc>/...``  - downloaded assets, laid out after their URL path
    """

    @property
    def html_path(self) -> Path:
        return self._root / f"{self._doc_name}.html"

    @property
    def metadata_path(self) -> Path:
        return self._root / f"{self._doc_name}.json"

    @property
    def assets_dir(self) -> Path:
        return self._root / self._doc_name

    async def save_document(self, content: bytes) -> Path:
        await self._write(self.html_path, content)
        return self.html_path

    async def save_metadata(self, metadata: Metadata) -> Path:
        try:
            content = metadata.model_dump_json(by_alias=True).encode("utf-8")
        except ValueError as exc:
            raise SerializationError(f"failed to encode metadata: {exc}") from exc
        await self._write(self.metadata_path, content)
        return self.metadata_path

    async def load_metadata(self) -> Optional[Metadata]:
        """Return the stored metadata, or ``None`` if none was saved yet.

        Raises:
            SerializationError: the metadata file exists but is malformed.
            StorageError: the metadata file exists but cannot be read.
        """
        try:
            async with aiofiles.open(self.metadata_path, "rb") as f:
                content = await f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"failed to read {self.metadata_path}: {exc}") from exc

        try:
            return Metadata.model_validate_json(content)
        except ValueError as exc:
            raise SerializationError(
                f"failed to decode {self.metadata_path}: {exc}"
            ) from exc

    def asset_file_path(self, asset: EmbeddedAsset) -> Path:
        """Return where *asset* is stored, without touching the filesystem.

        Path segments are URL-decoded and sanitised; ``.`` and ``..``
        segments are dropped, so the result always stays inside
        ``assets_dir``.  Directory URLs map to an ``index`` file and the
        query string is folded into the file name.
        """
        parts = urlsplit(asset.url)
        names = [unquote(segment) for segment in parts.path.split("/")]
        segments = [sanitize_name(n) for n in names if n not in ("", ".", "..")]
        if not segments or parts.path.endswith("/"):
            segments.append("index")
        if parts.query:
            segments[-1] = sanitize_name(f"{segments[-1]}+{parts.query}")
        return self.assets_dir.joinpath(*segments)

    def conflict_file_path(self, asset: EmbeddedAsset) -> Path:
        """Return a flat, URL-unique path for an asset whose regular path is
        already taken on the page by a different URL.
        """
        digest = hashlib.sha1(asset.url.encode("utf-8")).hexdigest()[:12]
        leaf = self.asset_file_path(asset).name
        return self.assets_dir / CONFLICTS_DIR / sanitize_name(f"{digest}-{leaf}")

    async def save_asset(self, asset: EmbeddedAsset) -> Path:
        if asset.data is None:
            raise StorageError(f"asset {asset.url} has not been downloaded")
        path = asset.path or self.asset_file_path(asset)
        await self._write(path, asset.data)
        logger.debug("Saved asset %s to %s (%d bytes)", asset.url, path, len(asset.data))
        return path

    async def _write(self, path: Path, content: bytes) -> None:
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as exc:
            raise StorageError(f"failed to write {path}: {exc}") from exc
