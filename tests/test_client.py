"""Tests for the SSS facade."""

from unittest.mock import MagicMock, patch

import pytest

import sss as sss_package
from sss.client import SSS
from sss.common.config import Settings
from sss.domain import WalkSignal
from sss.infra.storage.buffer_pool import get_default_pool
from sss.infra.storage.s3_client import S3ObjectStore


class TestConstruction:
    def test_builds_an_s3_store_lazily(self, settings):
        with patch.object(S3ObjectStore, "_build_client", return_value=MagicMock()) as build:
            client = SSS(settings=settings)
            build.assert_not_called()

            store = client.store

        assert isinstance(store, S3ObjectStore)
        assert store.bucket == "test-bucket"
        assert client.store is store
        build.assert_called_once_with(settings)

    def test_defaults_to_the_shared_pool(self, settings, store):
        assert SSS(settings=settings, store=store).pool is get_default_pool()

    def test_services_are_built_once(self, sss):
        assert sss.objects() is sss.objects()
        assert sss.writers() is sss.writers()
        assert sss.walker() is sss.walker()
        assert sss.multiparts() is sss.multiparts()

    def test_reads_settings_from_environment(self, monkeypatch, store):
        monkeypatch.setenv("S3_BUCKET", "env-bucket")

        assert SSS(store=store).settings.S3_BUCKET == "env-bucket"

    def test_package_exports(self):
        assert sss_package.SSS is SSS


class TestEndToEnd:
    def test_write_walk_read_delete(self, sss, store):
        with sss.writer("/logs/2024/app.log") as writer:
            writer.write(b"line one\n")
            writer.write(b"line two\n")
            writer.commit()
        sss.put_content("/logs/index", b"index")

        seen = []
        sss.walk("/", lambda info: seen.append(info.path))

        assert seen == ["/logs", "/logs/2024", "/logs/2024/app.log", "/logs/index"]
        assert sss.get_content("/logs/2024/app.log") == b"line one\nline two\n"
        assert sss.fs("/logs").read_file("index") == b"index"
        assert sss.delete_all("/logs") == 2
        assert store.objects == {}

    def test_walk_counts_entries(self, sss, store):
        store.add_object("a/b", b"x")

        assert sss.walk("/", lambda info: WalkSignal.CONTINUE) == 2

    def test_root_directory(self, store, pool):
        rooted = SSS(
            settings=Settings(S3_BUCKET="test-bucket", S3_ROOT_DIRECTORY="/prefix", S3_CHUNK_SIZE=4),
            store=store,
            pool=pool,
        )

        rooted.put_content("/file", b"data")

        assert "prefix/file" in store.objects
        assert rooted.stat("/file").size == 4

    def test_parallel_part_api(self, sss, store):
        multipart = sss.new_multipart("/big")
        multipart.upload_part(2, b"5678")
        multipart.upload_part(1, b"1234")

        sss.get_multipart("/big").commit()

        assert store.objects["big"].data == b"12345678"

    def test_commit_without_parts(self, sss):
        with pytest.raises(sss_package.NoPartsError):
            sss.new_multipart("/empty").commit()
