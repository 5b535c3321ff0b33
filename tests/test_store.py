from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from webmirror.core.errors import SerializationError, StorageError
from webmirror.models.mirror.document import EmbeddedAsset, Metadata
from webmirror.repositories.base import document_name, sanitize_name
from webmirror.repositories.mirror.store import CONFLICTS_DIR, FileStore

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestDocumentName:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://example.com/", "example.com"),
            ("https://example.com", "example.com"),
            ("https://Example.com/blog/post", "example.com_blog_post"),
            ("https://example.com/blog/post?id=7#top", "example.com_blog_post+id_7"),
            ("http://localhost:8080/a/b.html", "localhost_8080_a_b.html"),
            ("https://example.com/../../etc/passwd", "example.com_.._.._etc_passwd"),
        ],
    )
    def test_derived_from_host_path_and_query(self, url, expected):
        assert document_name(url) == expected

    def test_query_disambiguates_paths(self):
        assert document_name("https://a.com/s?q=1") != document_name("https://a.com/s?q=2")

    def test_fragment_is_dropped(self):
        assert document_name("https://a.com/p#one") == document_name("https://a.com/p#two")


class TestSanitizeName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("site.css", "site.css"),
            ("my file (1).png", "my_file_1_.png"),
            ("a/b\\c", "a_b_c"),
            ("..", "_."),
            (".htaccess", "_htaccess"),
            ("", "_"),
            ("???", "_"),
        ],
    )
    def test_removes_unsafe_characters(self, name, expected):
        assert sanitize_name(name) == expected

    def test_truncates_long_names(self):
        assert len(sanitize_name("x" * 500)) == 200


class TestMetadataFiles:
    async def test_round_trip(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/page")
        metadata = Metadata(
            num_links=4,
            num_images=1,
            fetched_at=_NOW,
            last_fetched_at=datetime(2024, 4, 30, tzinfo=timezone.utc),
        )
        path = await store.save_metadata(metadata)

        assert path == tmp_path.resolve() / "example.com_page.json"
        assert await store.load_metadata() == metadata

    async def test_file_uses_stored_field_names(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/page")
        await store.save_metadata(Metadata(num_links=4, num_images=1, fetched_at=_NOW))

        stored = json.loads(store.metadata_path.read_text())
        assert stored["NumLinks"] == 4
        assert stored["NumImages"] == 1
        assert stored["LastFetchedAt"] is None
        assert stored["FetchedAt"].startswith("2024-05-01T12:00:00")

    async def test_missing_file_returns_none(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/never")
        assert await store.load_metadata() is None

    async def test_malformed_json_is_an_error(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/page")
        store.metadata_path.write_text("{not json")
        with pytest.raises(SerializationError):
            await store.load_metadata()

    async def test_invalid_metadata_is_an_error(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/page")
        store.metadata_path.write_text('{"NumLinks": -3, "NumImages": 0}')
        with pytest.raises(SerializationError):
            await store.load_metadata()


class TestDocumentFile:
    async def test_save_document(self, tmp_path):
        store = FileStore.for_url(tmp_path, "https://example.com/")
        path = await store.save_document(b"<html></html>")
        assert path == tmp_path.resolve() / "example.com.html"
        assert path.read_bytes() == b"<html></html>"

    async def test_creates_root_directory(self, tmp_path):
        store = FileStore.for_url(tmp_path / "out" / "nested", "https://example.com/")
        path = await store.save_document(b"<html></html>")
        assert path.exists()

    async def test_write_failure_is_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FileStore.for_url(blocker, "https://example.com/")
        with pytest.raises(StorageError, match="failed to write"):
            await store.save_document(b"<html></html>")


class TestAssets:
    @pytest.fixture
    def store(self, tmp_path) -> FileStore:
        return FileStore.for_url(tmp_path, "https://example.com/docs/page.html")

    @pytest.mark.parametrize(
        ("url", "relative"),
        [
            ("https://example.com/static/css/site.css", "static/css/site.css"),
            ("https://example.com/img/", "img/index"),
            ("https://example.com/", "index"),
            ("https://example.com/app.js?v=3", "app.js+v_3"),
            ("https://example.com/a/%2e%2e/%2e%2e/etc/passwd", "a/etc/passwd"),
            ("https://example.com/my%20logo.png", "my_logo.png"),
            ("https://example.com/a%2Fb.png", "a_b.png"),
        ],
    )
    def test_asset_file_path(self, store, url, relative):
        path = store.asset_file_path(EmbeddedAsset(url=url))
        assert path == store.assets_dir / relative
        assert path.is_relative_to(store.assets_dir)

    def test_asset_file_path_does_not_touch_disk(self, store, tmp_path):
        store.asset_file_path(EmbeddedAsset(url="https://example.com/x/y.png"))
        assert list(tmp_path.iterdir()) == []

    async def test_save_asset_creates_directories(self, store):
        asset = EmbeddedAsset(url="https://example.com/static/css/site.css", data=b"body{}")
        path = await store.save_asset(asset)
        assert path == store.assets_dir / "static" / "css" / "site.css"
        assert path.read_bytes() == b"body{}"

    async def test_save_asset_without_data_is_an_error(self, store):
        with pytest.raises(StorageError, match="not been downloaded"):
            await store.save_asset(EmbeddedAsset(url="https://example.com/x.png"))

    async def test_save_asset_uses_assigned_path(self, store):
        asset = EmbeddedAsset(url="https://example.com/x.png", data=b"x")
        asset.path = store.conflict_file_path(asset)
        path = await store.save_asset(asset)
        assert path == asset.path
        assert path.read_bytes() == b"x"

    def test_conflict_file_path_is_unique_per_url(self, store):
        first = store.conflict_file_path(EmbeddedAsset(url="https://example.com/a%20b.png"))
        second = store.conflict_file_path(EmbeddedAsset(url="https://example.com/a_b.png"))
        assert first != second
        assert first.parent == second.parent == store.assets_dir / CONFLICTS_DIR
        assert first.name.endswith("-a_b.png")

    @pytest.mark.parametrize("name", [".conflicts", "..conflicts", "%2Econflicts"])
    def test_no_url_maps_into_conflicts_dir(self, store, name):
        path = store.asset_file_path(EmbeddedAsset(url=f"https://example.com/{name}/x.png"))
        assert CONFLICTS_DIR not in path.relative_to(store.assets_dir).parts
