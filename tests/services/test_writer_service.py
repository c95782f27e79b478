"""Tests for the chunked writer and its resumption."""

from __future__ import annotations

import base64
import hashlib

import pytest

from sss.client import SSS
from sss.common.config import Settings
from sss.infra.storage.client import StorageError
from sss.services.base import AlreadyFinalizedError, NoPartsError, PathNotFoundError
from sss.services.writer_service import WriterOptions, normalize_sha256

DATA = bytes(range(22))


class TestChunking:
    def test_uploads_full_chunks_while_writing(self, sss, store):
        writer = sss.writer("/file")

        assert writer.write(DATA[:10]) == 10

        assert store.count("upload_part") == 2
        assert writer.size == 8
        assert writer.buffered == 2

    def test_small_writes_flush_floor_of_total_over_chunk(self, sss, store):
        writer = sss.writer("/file")

        for byte in DATA[:9]:
            writer.write(bytes([byte]))

        assert store.count("upload_part") == 2
        assert [p.part_number for p in writer.parts] == [1, 2]

    def test_commit_uploads_the_tail_as_a_last_part(self, sss, store):
        writer = sss.writer("/file")
        writer.write(DATA[:10])

        writer.commit()

        assert store.count("upload_part") == 3
        assert writer.parts[-1].size == 2
        assert store.objects["file"].data == DATA[:10]

    def test_commit_on_a_chunk_boundary_adds_no_part(self, sss, store):
        writer = sss.writer("/file")
        writer.write(DATA[:8])

        writer.commit()

        assert store.count("upload_part") == 2
        assert store.objects["file"].data == DATA[:8]

    def test_commit_without_data_fails_without_completion(self, sss, store):
        writer = sss.writer("/file")

        with pytest.raises(NoPartsError):
            writer.commit()

        assert store.count("complete_multipart_upload") == 0

    def test_context_manager_closes(self, sss, pool):
        with sss.writer("/file") as writer:
            writer.write(DATA[:6])
            writer.commit()

        assert writer.closed
        assert pool.idle == 1

    def test_next_writer_starts_from_an_empty_pooled_buffer(self, sss, store, pool):
        with sss.writer("/first") as writer:
            writer.write(DATA[:6])
            writer.cancel()

        with sss.writer("/second") as writer:
            assert writer.buffered == 0
            assert pool.idle == 0
            writer.write(DATA[:5])
            writer.commit()

        assert store.objects["second"].data == DATA[:5]


class TestFinalizedStates:
    def test_write_after_close_fails_without_store_call(self, sss, store):
        writer = sss.writer("/file")
        writer.close()
        before = len(store.calls)

        with pytest.raises(AlreadyFinalizedError) as exc_info:
            writer.write(b"x")

        assert exc_info.value.state == "closed"
        assert len(store.calls) == before

    def test_commit_and_cancel_after_close_fail(self, sss):
        writer = sss.writer("/file")
        writer.write(DATA[:5])
        writer.close()

        with pytest.raises(AlreadyFinalizedError):
            writer.commit()
        with pytest.raises(AlreadyFinalizedError):
            writer.cancel()

    def test_write_after_commit(self, sss):
        writer = sss.writer("/file")
        writer.write(DATA[:5])
        writer.commit()

        with pytest.raises(AlreadyFinalizedError, match="already committed"):
            writer.write(b"x")

    def test_commit_after_cancel(self, sss):
        writer = sss.writer("/file")
        writer.write(DATA[:5])
        writer.cancel()

        with pytest.raises(AlreadyFinalizedError, match="already cancelled"):
            writer.commit()

    def test_close_twice(self, sss, pool):
        writer = sss.writer("/file")
        writer.close()

        with pytest.raises(AlreadyFinalizedError, match="already closed"):
            writer.close()
        assert pool.idle == 1

    def test_cancel_counts_even_when_abort_fails(self, sss, store):
        writer = sss.writer("/file")
        writer.write(DATA[:5])
        store.fail_next("abort_multipart_upload")

        with pytest.raises(StorageError):
            writer.cancel()
        with pytest.raises(AlreadyFinalizedError, match="already cancelled"):
            writer.write(b"x")

    def test_cancel_aborts_the_session(self, sss, store):
        writer = sss.writer("/file")
        writer.write(DATA[:5])

        writer.cancel()

        assert writer.upload_id not in store.uploads
        assert "file" not in store.objects


class TestFailures:
    def test_failed_flush_keeps_bytes_buffered(self, sss, store):
        writer = sss.writer("/file")
        store.fail_next("upload_part")

        with pytest.raises(StorageError):
            writer.write(DATA[:6])

        assert writer.size == 0
        assert writer.buffered == 6
        assert writer.parts == ()

        writer.flush()
        assert writer.size == 4
        assert writer.buffered == 2

        writer.commit()
        assert store.objects["file"].data == DATA[:6]

    def test_failed_completion_can_be_retried(self, sss, store):
        writer = sss.writer("/file")
        writer.write(DATA[:6])
        store.fail_next("complete_multipart_upload")

        with pytest.raises(StorageError):
            writer.commit()
        writer.commit()

        assert store.objects["file"].data == DATA[:6]
        assert store.count("upload_part") == 2


class TestResume:
    def test_resumed_upload_is_byte_identical(self, sss, store):
        first = sss.writer("/file")
        first.write(DATA[:12])
        first.close()

        resumed = sss.writer_with_append("/file")
        assert resumed.size == 12
        assert resumed.chunk_size == 4
        resumed.write(DATA[resumed.size :])
        resumed.commit()

        assert store.objects["file"].data == DATA
        assert store.count("create_multipart_upload") == 1

    def test_short_unfinished_part_is_uploaded_again(self, sss, store):
        first = sss.writer("/file")
        first.write(DATA[:10])
        sss.get_multipart("/file").upload_part(3, DATA[8:10])
        first.close()

        resumed = sss.writer_with_append("/file")
        assert resumed.size == 8
        resumed.write(DATA[resumed.size :])
        resumed.commit()

        assert store.objects["file"].data == DATA

    def test_chunk_size_comes_from_the_session(self, settings, store, pool):
        other = SSS(
            settings=Settings(S3_BUCKET="test-bucket", S3_CHUNK_SIZE=3),
            store=store,
            pool=pool,
        )
        first = other.writer("/file")
        first.write(DATA[:7])
        first.close()

        resumed = SSS(settings=settings, store=store, pool=pool).writer_with_append(
            "/file"
        )

        assert resumed.chunk_size == 3
        assert resumed.size == 6

    def test_empty_session_resumes_from_zero(self, sss):
        sss.writer("/file").close()

        resumed = sss.writer_with_append("/file")

        assert resumed.size == 0
        assert resumed.chunk_size == 4

    def test_append_without_session(self, sss):
        with pytest.raises(PathNotFoundError):
            sss.writer_with_append("/file")

    def test_append_by_upload_id(self, sss, store):
        first = sss.writer("/file")
        first.write(DATA[:9])
        first.close()

        resumed = sss.writer_with_append_by_upload_id("/file", first.upload_id)
        resumed.write(DATA[resumed.size :])
        resumed.commit()

        assert store.objects["file"].data == DATA

    def test_append_by_unknown_upload_id(self, sss):
        with pytest.raises(PathNotFoundError):
            sss.writer_with_append_by_upload_id("/file", "missing")


class TestChecksum:
    DIGEST = hashlib.sha256(DATA).digest()

    def test_hex_checksum_is_sent_as_base64(self, sss, store):
        writer = sss.writer("/file", WriterOptions(sha256=self.DIGEST.hex()))
        writer.write(DATA)
        writer.commit()

        assert store.completed[0][3] == base64.b64encode(self.DIGEST).decode()

    def test_normalize_accepts_url_safe_base64(self):
        encoded = base64.urlsafe_b64encode(self.DIGEST).decode()

        assert normalize_sha256(encoded) == base64.b64encode(self.DIGEST).decode()

    def test_normalize_ignores_garbage(self, caplog):
        with caplog.at_level("WARNING"):
            assert normalize_sha256("not a checksum") is None

        assert "unknown checksum sha256" in caplog.text

    def test_content_type_override(self, sss, store):
        writer = sss.writer("/file", WriterOptions(content_type="text/plain"))

        assert store.uploads[writer.upload_id].attributes.content_type == "text/plain"
