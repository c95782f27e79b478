"""Tests for single-object operations and listings."""

from __future__ import annotations

import pytest

from sss.common.config import Settings
from sss.infra.storage.client import StorageError
from sss.services.base import PathNotFoundError
from sss.services.object_service import ObjectService
from sss.services.writer_service import WriterOptions


class TestPathMapping:
    @pytest.mark.parametrize(
        ("root", "path", "key"),
        [
            ("", "/a/b", "a/b"),
            ("/", "/a/b", "a/b"),
            ("/data", "/a/b", "data/a/b"),
            ("/data/", "/a/b", "data/a/b"),
            ("data", "/", "data/"),
        ],
    )
    def test_key_for(self, store, root, path, key):
        service = ObjectService(store, Settings(S3_ROOT_DIRECTORY=root))

        assert service.key_for(path) == key

    def test_path_for_round_trips(self, store):
        service = ObjectService(store, Settings(S3_ROOT_DIRECTORY="/data"))

        assert service.path_for(service.key_for("/a/b")) == "/a/b"


class TestContent:
    def test_put_and_get(self, sss, store):
        sss.put_content("/notes.txt", b"hello", WriterOptions(content_type="text/plain"))

        assert sss.get_content("/notes.txt") == b"hello"
        assert store.objects["notes.txt"].attributes.content_type == "text/plain"

    def test_get_missing(self, sss):
        with pytest.raises(PathNotFoundError) as exc_info:
            sss.get_content("/missing")

        assert exc_info.value.path == "/missing"

    def test_reader_with_offset_and_limit(self, sss, store):
        store.add_object("file", b"0123456789")

        assert sss.reader("/file", offset=3).read() == b"3456789"
        assert sss.reader("/file", offset=2, limit=3).read() == b"234"

    def test_reader_past_the_end_is_empty(self, sss, store):
        store.add_object("file", b"0123")

        assert sss.reader("/file", offset=10).read() == b""


class TestStat:
    def test_file(self, sss, store):
        sss.put_content("/dir/file", b"12345")

        info = sss.stat("/dir/file")

        assert not info.is_dir
        assert info.size == 5
        assert info.name == "file"
        assert info.mode == 0o644
        assert info.extra.content_type == "application/octet-stream"

    def test_directory_falls_back_to_listing(self, sss, store):
        store.add_object("dir/file", b"x")

        info = sss.stat("/dir")

        assert info.is_dir
        assert info.mode & 0o777 == 0o755
        assert store.count("head_object") == 1
        assert store.count("list_objects") == 2

    def test_sibling_does_not_make_a_directory(self, sss, store):
        store.add_object("ab", b"x")

        with pytest.raises(PathNotFoundError):
            sss.stat("/a")

    def test_forbidden_head_lists_instead(self, sss, store):
        store.add_object("file", b"xyz")
        store.fail_next("head_object", StorageError("Forbidden", code="403"))

        info = sss.stat("/file")

        assert not info.is_dir
        assert info.size == 3
        assert info.extra is None

    def test_transport_errors_are_not_masked(self, sss, store):
        store.fail_next("head_object", StorageError("connection reset"))

        with pytest.raises(StorageError, match="connection reset"):
            sss.stat("/file")

    def test_missing(self, sss):
        with pytest.raises(PathNotFoundError, match="path not found: /nothing"):
            sss.stat("/nothing")


class TestList:
    @pytest.fixture()
    def listing(self, store):
        store.add_object("dir/", b"")
        store.add_object("dir/a", b"aa")
        store.add_object("dir/empty", b"")
        store.add_object("dir/sub/b", b"b")
        store.add_object("dir/sub/c", b"c")
        store.add_object("dirt", b"t")
        return store

    def test_one_level(self, sss, listing):
        seen = []
        sss.list("/dir", lambda info: seen.append((info.path, info.is_dir)))

        assert sorted(seen) == [
            ("/dir/a", False),
            ("/dir/empty", True),
            ("/dir/sub", True),
        ]

    def test_stops_when_callback_returns_false(self, sss, listing):
        seen = []

        def collect(info):
            seen.append(info.path)
            return False

        sss.list("/dir", collect)

        assert len(seen) == 1


class TestDelete:
    def test_delete(self, sss, store):
        store.add_object("file", b"x")

        sss.delete("/file")

        assert "file" not in store.objects

    def test_delete_all_keeps_siblings(self, sss, store):
        for key in ("a", "a/1", "a/2", "a/3/4", "ab", "a-b"):
            store.add_object(key, b"x")

        deleted = sss.delete_all("/a")

        assert deleted == 4
        assert sorted(store.objects) == ["a-b", "ab"]

    def test_delete_all_missing(self, sss, store):
        store.add_object("ab", b"x")

        with pytest.raises(PathNotFoundError):
            sss.delete_all("/a")

    def test_delete_all_reports_refused_keys(self, sss, store):
        store.add_object("a/1", b"x")
        store.add_object("a/2", b"x")
        store.undeletable.add("a/2")

        with pytest.raises(StorageError, match="a/2"):
            sss.delete_all("/a")


class TestCopy:
    def test_copy(self, sss, store):
        store.add_object("src", b"payload")

        sss.copy("/src", "/dst")

        assert store.objects["dst"].data == b"payload"
        assert store.objects["dst"].attributes.acl == "private"

    def test_copy_missing_source(self, sss):
        with pytest.raises(PathNotFoundError):
            sss.copy("/missing", "/dst")
