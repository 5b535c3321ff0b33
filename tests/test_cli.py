from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from webmirror.cli import build_parser, main, report, run
from webmirror.core.config import settings
from webmirror.core.errors import BadStatusError
from webmirror.models.mirror.document import FetchResult, Metadata
from webmirror.repositories.mirror.store import FileStore

_NOW = datetime.now(timezone.utc)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["https://example.com/"])
        assert args.urls == ["https://example.com/"]
        assert not args.metadata
        assert not args.mirror
        assert not args.blind
        assert not args.sync

    def test_flags(self):
        args = build_parser().parse_args(
            ["-a", "-m", "--blind", "-c", "4", "--sync", "https://a.com/", "https://b.com/"]
        )
        assert args.metadata and args.mirror and args.blind and args.sync
        assert args.concurrency == 4
        assert args.urls == ["https://a.com/", "https://b.com/"]

    def test_requires_a_url(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code != 0


class TestMain:
    def test_invalid_url_is_a_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["https://example.com/", "not a url"])
        assert exc_info.value.code != 0

    def test_negative_concurrency_is_a_usage_error(self):
        with pytest.raises(SystemExit):
            main(["-c", "-1", "https://example.com/"])

    def test_uses_configured_store_dir(self, tmp_path):
        with (
            patch.object(settings, "root_store_dir", tmp_path),
            patch("webmirror.cli.run", new_callable=AsyncMock, return_value=0) as mock_run,
        ):
            assert main(["https://example.com/"]) == 0
        args, root_dir = mock_run.call_args.args
        assert root_dir == tmp_path
        assert args.urls == ["https://example.com/"]

    def test_missing_working_directory_exits_1(self):
        with (
            patch.object(settings, "root_store_dir", None),
            patch("webmirror.cli.Path.cwd", side_effect=FileNotFoundError("gone")),
            patch("webmirror.cli.run", new_callable=AsyncMock) as mock_run,
        ):
            assert main(["https://example.com/"]) == 1
        mock_run.assert_not_called()


class TestRun:
    @respx.mock
    async def test_fetches_each_url_once_and_keeps_going(self, tmp_path, canonical_html):
        ok = respx.get("https://example.com/").mock(
            return_value=httpx.Response(
                200, headers={"content-type": "text/html"}, text=canonical_html
            )
        )
        respx.get("https://example.com/missing").mock(return_value=httpx.Response(404))
        args = build_parser().parse_args(
            ["https://example.com/", "https://example.com/missing", "https://example.com"]
        )

        assert await run(args, tmp_path) == 0

        assert ok.call_count == 1
        assert FileStore.for_url(tmp_path, "https://example.com/").html_path.exists()
        assert not FileStore.for_url(tmp_path, "https://example.com/missing").html_path.exists()


class TestReport:
    def test_logs_failures(self):
        result = FetchResult(url="https://example.com/", error=BadStatusError(500))
        with patch("webmirror.cli.logger") as mock_logger:
            report(result, print_metadata=True)
        mock_logger.error.assert_called_once()
        mock_logger.info.assert_not_called()

    def test_prints_metadata_when_asked(self):
        result = FetchResult(
            url="https://example.com/",
            metadata=Metadata(num_links=4, num_images=1, fetched_at=_NOW),
        )
        with patch("webmirror.cli.logger") as mock_logger:
            report(result, print_metadata=True)
        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args.args[2:4] == (4, 1)

    def test_quiet_without_metadata_flag(self):
        result = FetchResult(
            url="https://example.com/",
            metadata=Metadata(num_links=4, num_images=1, fetched_at=_NOW),
        )
        with patch("webmirror.cli.logger") as mock_logger:
            report(result)
        mock_logger.info.assert_not_called()
        mock_logger.error.assert_not_called()
