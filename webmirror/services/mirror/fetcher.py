"""Fetch orchestration.

A :class:`Fetcher` drives one fetch per submitted URL::

    request -> status check -> content-type check -> parse
      -> extract + merge metadata -> [rewrite + download assets]
      -> persist HTML and metadata -> callbacks

Any failure ends that URL's fetch only; it is reported through the
``FetchResult`` passed to the completion callbacks.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from webmirror.core.config import MirrorMode
from webmirror.core.errors import (
    BadStatusError,
    DocumentNameCollisionError,
    MirrorError,
    TransportError,
    UnsupportedContentTypeError,
)
from webmirror.models.mirror.document import EmbeddedAsset, FetchResult, Metadata
from webmirror.repositories.mirror.store import FileStore
from webmirror.services.mirror.document import Document
from webmirror.services.mirror.metadata import extract, merge
from webmirror.services.mirror.rewriter import MirrorRewriter
from webmirror.services.mirror.urls import determine_base_url, normalize_url
from webmirror.workers.transport import ThrottledTransport

logger = logging.getLogger(__name__)

FetchedCallback = Callable[[FetchResult], None]


class Fetcher:
    """Fetches pages, mirrors their assets, and reports each outcome.

    With ``run_async`` each submitted URL runs in its own task and
    ``await_all()`` joins them; otherwise ``submit()`` runs the fetch to
    completion before returning.  Concurrency across tasks is bounded by the
    transport; the assets of one page are downloaded one at a time.

    Register callbacks with ``on_complete()`` before submitting URLs.  The
    callback list is not guarded against registration during dispatch.
    """

    def __init__(
        self,
        transport: ThrottledTransport,
        root_dir: Union[str, Path],
        *,
        run_async: bool = False,
        mirror: bool = False,
        mirror_mode: MirrorMode = MirrorMode.FILTERED,
    ) -> None:
        self.run_async = run_async
        self.mirror = mirror
        self.mirror_mode = mirror_mode
        self._transport = transport
        self._root_dir = Path(root_dir)
        self._callbacks: list[FetchedCallback] = []
        self._submitted: set[str] = set()
        self._tasks: set[asyncio.Task[FetchResult]] = set()
        # document name -> final page URL, for collision detection
        self._doc_names: dict[str, str] = {}

    def on_complete(self, callback: FetchedCallback) -> None:
        self._callbacks.append(callback)

    async def submit(self, url: str) -> Optional[FetchResult]:
        """Start fetching *url*.

        Returns the result in synchronous mode, ``None`` in asynchronous
        mode or when *url* was already submitted to this fetcher.

        Raises:
            InvalidURLError: *url* is not a valid http(s) URL.
        """
        normalized = normalize_url(url)
        if normalized in self._submitted:
            logger.debug("Skipping duplicate URL %s", url)
            return None
        self._submitted.add(normalized)

        if not self.run_async:
            return await self._run(url, normalized)

        task = asyncio.create_task(self._run(url, normalized))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return None

    async def await_all(self) -> None:
        """Block until every submitted URL has finished."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, url: str, request_url: str) -> FetchResult:
        response: Optional[httpx.Response] = None
        metadata: Optional[Metadata] = None
        error: Optional[Exception] = None
        try:
            response = await self._transport.get(request_url)
            metadata = await self._process(response)
        except MirrorError as exc:
            error = exc
        except asyncio.CancelledError:
            logger.warning("Fetch of %s cancelled", url)
            error = TransportError(f"fetch of {url} cancelled")
            self._dispatch(FetchResult(url=url, response=response, error=error))
            raise
        except Exception as exc:
            logger.exception("Unexpected error while fetching %s", url)
            error = exc

        result = FetchResult(url=url, metadata=metadata, response=response, error=error)
        self._dispatch(result)
        return result

    async def _process(self, response: httpx.Response) -> Metadata:
        page_url = str(response.url)
        if not response.is_success:
            raise BadStatusError(response.status_code, page_url)

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type.lower():
            raise UnsupportedContentTypeError(content_type)

        store = FileStore.for_url(self._root_dir, page_url)
        claimed = self._claim_doc_name(store.doc_name, page_url)
        try:
            return await self._store_page(store, response, page_url, content_type)
        except BaseException:
            # a page that was not stored leaves its name free for other URLs
            if claimed:
                del self._doc_names[store.doc_name]
            raise

    async def _store_page(
        self, store: FileStore, response: httpx.Response, page_url: str, content_type: str
    ) -> Metadata:
        # The body was read once by the transport; the bytes stay on the
        # response for diagnostics after parsing.
        body = response.content
        logger.debug("Fetched %s (%d bytes, %s)", page_url, len(body), content_type)
        document = Document.parse(body)

        metadata = merge(extract(document), await store.load_metadata())

        if self.mirror:
            base_url = determine_base_url(page_url, document)
            rewriter = MirrorRewriter(store, self.mirror_mode)
            assets = rewriter.rewrite(document, base_url, page_url)
            await self._download_assets(store, assets)

        await store.save_document(document.serialize())
        await store.save_metadata(metadata)
        return metadata

    async def _download_assets(self, store: FileStore, assets: list[EmbeddedAsset]) -> None:
        for asset in assets:
            try:
                response = await self._transport.get(asset.url)
            except MirrorError as exc:
                raise TransportError(f"failed to download asset {asset.url}: {exc}") from exc
            if not response.is_success:
                raise TransportError(
                    f"failed to download asset {asset.url}: "
                    f"bad HTTP status code: {response.status_code}"
                )
            asset.data = response.content
            await store.save_asset(asset)
            asset.data = None

    def _claim_doc_name(self, doc_name: str, page_url: str) -> bool:
        """Reserve *doc_name* for *page_url*; returns True if newly reserved."""
        owner = self._doc_names.get(doc_name)
        if owner is None:
            self._doc_names[doc_name] = page_url
            return True
        if owner != page_url:
            logger.warning(
                "Document name %s of %s collides with %s", doc_name, page_url, owner
            )
            raise DocumentNameCollisionError(doc_name, page_url, owner)
        return False

    def _dispatch(self, result: FetchResult) -> None:
        for callback in self._callbacks:
            try:
                callback(result)
            except Exception:
                logger.exception("Completion callback failed for %s", result.url)
