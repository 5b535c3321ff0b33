"""Command line entry point.

    webmirror [--metadata | -a] [--mirror | -m] [--blind] URL [URL2] ...

Pages are stored under ``$ROOT_STORE_DIR`` (default: the current working
directory).  A URL that fails to fetch is logged and does not stop the
others.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Optional, Sequence

from webmirror.core.config import MirrorMode, settings
from webmirror.core.errors import InvalidURLError
from webmirror.core.log import configure_logging
from webmirror.models.mirror.document import FetchResult
from webmirror.services.mirror.fetcher import Fetcher
from webmirror.services.mirror.urls import normalize_url
from webmirror.workers.transport import ThrottledTransport

logger = logging.getLogger("webmirror.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webmirror",
        description="Fetch web pages and store them, with their metadata, on disk.",
    )
    parser.add_argument("urls", nargs="+", metavar="URL", help="page URLs to fetch")
    parser.add_argument(
        "-a", "--metadata", action="store_true",
        help="print metadata about fetched web pages",
    )
    parser.add_argument(
        "-m", "--mirror", action="store_true",
        help="download same-origin images, stylesheets and scripts and point the page at them",
    )
    parser.add_argument(
        "--blind", action="store_true",
        help="with --mirror, rewrite every src/href/data URL without downloading anything",
    )
    parser.add_argument(
        "-c", "--concurrency", type=int, default=settings.http_max_concurrency,
        help="maximum concurrent HTTP requests (0 = unlimited)",
    )
    parser.add_argument(
        "--sync", action="store_true",
        help="fetch one URL at a time, in the order given",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def report(result: FetchResult, print_metadata: bool = False) -> None:
    """Completion callback: log the outcome of one fetch."""
    if result.error is not None:
        logger.error("Failed to fetch web page %s: %s", result.url, result.error)
        return
    if print_metadata and result.metadata is not None:
        logger.info(
            "Web page fetched %s numLinks=%d images=%d lastFetchedAt=%s",
            result.url,
            result.metadata.num_links,
            result.metadata.num_images,
            result.metadata.last_fetched_at.isoformat()
            if result.metadata.last_fetched_at
            else "never",
        )


async def run(args: argparse.Namespace, root_dir: Path) -> int:
    transport = ThrottledTransport(
        max_concurrency=args.concurrency,
        timeout=settings.http_timeout,
        verify=settings.http_verify_ssl,
        user_agent=settings.http_user_agent,
    )
    try:
        fetcher = Fetcher(
            transport,
            root_dir,
            run_async=not args.sync,
            mirror=args.mirror,
            mirror_mode=MirrorMode.BLIND if args.blind else settings.mirror_mode,
        )
        fetcher.on_complete(partial(report, print_metadata=args.metadata))
        for url in args.urls:
            await fetcher.submit(url)
        await fetcher.await_all()
    finally:
        await transport.aclose()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.concurrency < 0:
        parser.error("--concurrency must be >= 0")
    for url in args.urls:
        try:
            normalize_url(url)
        except InvalidURLError:
            parser.error(f"{url} is not valid URL")

    configure_logging("DEBUG" if args.verbose else None)

    try:
        root_dir = settings.root_store_dir or Path.cwd()
    except OSError as exc:
        logger.error("Cannot determine the storage directory: %s", exc)
        return 1

    return asyncio.run(run(args, root_dir))


if __name__ == "__main__":
    sys.exit(main())
