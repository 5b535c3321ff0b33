from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urldefrag, urlsplit

from bs4.element import Tag

from webmirror.core.config import MirrorMode
from webmirror.core.errors import InvalidURLError
from webmirror.models.mirror.document import EmbeddedAsset
from webmirror.repositories.mirror.store import FileStore
from webmirror.services.mirror.document import Document
from webmirror.services.mirror.urls import is_local_reference, resolve_and_classify

logger = logging.getLogger(__name__)

# Elements whose URL is needed to render the page, and the attribute holding it
ASSET_SELECTOR = "img[src], link[rel~=stylesheet][href], script[src]"
_ASSET_ATTRS = {"img": "src", "script": "src", "link": "href"}

BLIND_ATTRS = ("src", "href", "data")


class MirrorRewriter:
    """Rewrites embedded asset URLs of a page to local file references.

    In ``filtered`` mode only same-origin images, stylesheets and scripts
    are rewritten, and each distinct asset URL is returned once so the
    caller can download it.  Foreign assets keep their original URL.

    In ``blind`` mode every ``src``, ``href`` and ``data`` attribute that
    resolves to an http(s) URL is rewritten, whatever its origin, and
    nothing is returned for download.  ``<base>`` and in-page ``#fragment``
    links are left alone.

    Each distinct URL gets its own file.  When two URLs of the page would
    share a file, or one would need a directory where the other is a file,
    the later one is moved to ``FileStore.conflict_file_path``.

    Rewriting collects every change before applying any of them, so the
    tree is never mutated while it is being traversed.
    """

    def __init__(self, store: FileStore, mode: MirrorMode = MirrorMode.FILTERED) -> None:
        self._store = store
        self._mode = mode
        self._files: dict[Path, str] = {}
        self._dirs: set[Path] = set()

    def rewrite(self, document: Document, base_url: str, page_url: str) -> list[EmbeddedAsset]:
        self._files.clear()
        self._dirs.clear()
        assets: dict[str, EmbeddedAsset] = {}

        if self._mode is MirrorMode.BLIND:
            self._apply(document, self._collect_blind(document, assets, base_url, page_url))
            return []

        updates: list[tuple[Tag, str, str]] = []
        for node in document.select(ASSET_SELECTOR):
            attr = _ASSET_ATTRS[node.name]
            resolved = self._resolve(document, node, attr, base_url, page_url)
            if resolved is None:
                continue
            url, same_origin = resolved
            if not same_origin:
                continue
            asset = self._register(assets, url)
            updates.append((node, attr, self.local_reference(asset)))

        self._apply(document, updates)
        return list(assets.values())

    def local_reference(self, asset: EmbeddedAsset) -> str:
        """Return the ``file:`` URI the document uses for *asset*."""
        return (asset.path or self._store.asset_file_path(asset)).as_uri()

    def _collect_blind(
        self,
        document: Document,
        assets: dict[str, EmbeddedAsset],
        base_url: str,
        page_url: str,
    ) -> list[tuple[Tag, str, str]]:
        updates = []
        for attr in BLIND_ATTRS:
            for node in document.select(f"[{attr}]"):
                if node.name == "base":
                    continue
                resolved = self._resolve(document, node, attr, base_url, page_url)
                if resolved is None:
                    continue
                url, _ = resolved
                if urlsplit(url).scheme not in ("http", "https"):
                    continue
                asset = self._register(assets, url)
                updates.append((node, attr, self.local_reference(asset)))
        return updates

    def _register(self, assets: dict[str, EmbeddedAsset], url: str) -> EmbeddedAsset:
        asset = assets.get(url)
        if asset is None:
            asset = assets[url] = EmbeddedAsset(url=url)
            asset.path = self._allocate(asset)
        return asset

    def _allocate(self, asset: EmbeddedAsset) -> Path:
        path = self._store.asset_file_path(asset)
        relative = path.relative_to(self._store.assets_dir)
        parents = [self._store.assets_dir / p for p in relative.parents if p != Path(".")]

        owner = self._files.get(path)
        if owner is not None or path in self._dirs or any(p in self._files for p in parents):
            conflict = self._store.conflict_file_path(asset)
            logger.warning(
                "Asset %s clashes with %s at %s; storing it at %s",
                asset.url,
                owner or "another asset",
                path,
                conflict,
            )
            path = conflict
        else:
            self._dirs.update(parents)
        self._files[path] = asset.url
        return path

    def _resolve(
        self, document: Document, node: Tag, attr: str, base_url: str, page_url: str
    ) -> tuple[str, bool] | None:
        value = document.get_attr(node, attr)
        if not value or not value.strip() or is_local_reference(value):
            return None
        if value.strip().startswith("#"):
            return None
        try:
            url, same_origin = resolve_and_classify(base_url, value, page_url)
        except InvalidURLError as exc:
            logger.debug("Skipping <%s %s=%r>: %s", node.name, attr, value, exc)
            return None
        return urldefrag(url).url, same_origin

    @staticmethod
    def _apply(document: Document, updates: list[tuple[Tag, str, str]]) -> None:
        for node, attr, reference in updates:
            document.set_attr(node, attr, reference)
