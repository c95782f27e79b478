"""Resumable chunked writer on top of a multipart upload session.

The writer buffers incoming bytes and uploads them as fixed-size numbered
parts. Its durable size is what the store has acknowledged, so a caller that
loses its process can reopen the session with ``SSS.writer_with_append``,
seek its input to ``writer.size`` and carry on.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Sequence

from sss.common.config import Settings
from sss.infra.storage.buffer_pool import BufferPool
from sss.infra.storage.client import CompletedPart, ObjectStore, Part

from .base import AlreadyFinalizedError, BaseService, NoPartsError
from .multipart_service import Multipart, MultipartService, trusted_prefix

logger = logging.getLogger(__name__)

SHA256_DIGEST_SIZE = 32


def normalize_sha256(value: str) -> str | None:
    """Return a whole-object SHA-256 checksum in the base64 form S3 expects.

    Base64 (standard or URL-safe) and hex digests are accepted; both must
    decode to 32 bytes. Anything else is logged and ignored.
    """
    raw: bytes | None = None
    try:
        raw = base64.b64decode(value, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        raw = None
    if raw is None or len(raw) != SHA256_DIGEST_SIZE:
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            raw = None
    if raw is None or len(raw) != SHA256_DIGEST_SIZE:
        logger.warning("unknown checksum sha256 %r, ignore it", value)
        return None
    return base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True, slots=True)
class WriterOptions:
    """Per-upload options.

    Attributes:
        sha256: Whole-object SHA-256 checksum (base64 or hex) passed through
            to the completion call.
        content_type: Content type for the assembled object; the configured
            default applies when unset.
    """

    sha256: str | None = None
    content_type: str | None = None

    @property
    def checksum_sha256(self) -> str | None:
        if not self.sha256:
            return None
        return normalize_sha256(self.sha256)


class ChunkedWriter:
    """Stream sink that turns writes into numbered parts of one session.

    Not safe for concurrent use: the buffer and the part list are mutated in
    place. Use :meth:`sss.services.multipart_service.Multipart.upload_part`
    for parallel uploads.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        key: str,
        upload_id: str,
        chunk_size: int,
        pool: BufferPool,
        parts: Sequence[Part] | None = None,
        options: WriterOptions | None = None,
    ) -> None:
        trusted = trusted_prefix(parts or ())
        self._store = store
        self._key = key
        self._upload_id = upload_id
        self._pool = pool
        self._options = options or WriterOptions()
        self._parts: list[Part] = list(trusted.items)
        self._size = trusted.size
        self._chunk_size = trusted.chunk_size or chunk_size
        self._buffer = pool.acquire()
        self._closed = False
        self._committed = False
        self._cancelled = False

    def __enter__(self) -> "ChunkedWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._closed:
            self.close()

    def __repr__(self) -> str:
        return (
            f"ChunkedWriter(key={self._key!r}, upload_id={self._upload_id!r}, "
            f"size={self._size})"
        )

    @property
    def key(self) -> str:
        return self._key

    @property
    def upload_id(self) -> str:
        return self._upload_id

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def parts(self) -> tuple[Part, ...]:
        return tuple(self._parts)

    @property
    def size(self) -> int:
        """Bytes the store has acknowledged; buffered bytes are not counted."""
        return self._size

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """Buffer ``data`` and upload every full chunk.

        If an upload fails the error is raised and the bytes stay buffered;
        call :meth:`flush` to retry without writing them again.
        """
        self._check_open()
        self._buffer.extend(data)
        self.flush()
        return len(data)

    def flush(self) -> None:
        """Upload buffered bytes while at least one full chunk is buffered."""
        self._check_open()
        while len(self._buffer) >= self._chunk_size:
            self._upload_next()

    def commit(self) -> None:
        """Upload the buffered tail and complete the session.

        Raises:
            AlreadyFinalizedError: If the writer is closed, committed or cancelled.
            NoPartsError: If nothing was ever uploaded.
            StorageError: If an upload or the completion fails.
        """
        self._check_open()
        while self._buffer:
            self._upload_next()

        if not self._parts:
            raise NoPartsError("no parts to commit")

        completed = sorted(
            (CompletedPart(part_number=p.part_number, etag=p.etag) for p in self._parts),
            key=lambda p: p.part_number,
        )
        self._store.complete_multipart_upload(
            key=self._key,
            upload_id=self._upload_id,
            parts=completed,
            checksum_sha256=self._options.checksum_sha256,
        )
        self._committed = True
        logger.info(
            "committed %s (%s parts, %s bytes)", self._key, len(completed), self._size
        )

    def cancel(self) -> None:
        """Abort the session. The writer counts as cancelled even if the abort fails."""
        self._check_open()
        self._cancelled = True
        self._store.abort_multipart_upload(key=self._key, upload_id=self._upload_id)
        logger.info("cancelled upload %s of %s", self._upload_id, self._key)

    def close(self) -> None:
        """Release the buffer. An uncommitted session is left open in the store."""
        if self._closed:
            raise AlreadyFinalizedError("closed")
        self._closed = True
        buffer, self._buffer = self._buffer, bytearray()
        self._pool.release(buffer)

    def _check_open(self) -> None:
        if self._closed:
            raise AlreadyFinalizedError("closed")
        if self._committed:
            raise AlreadyFinalizedError("committed")
        if self._cancelled:
            raise AlreadyFinalizedError("cancelled")

    def _upload_next(self) -> None:
        chunk = bytes(self._buffer[: self._chunk_size])
        part_number = len(self._parts) + 1
        part = self._store.upload_part(
            key=self._key,
            upload_id=self._upload_id,
            part_number=part_number,
            body=chunk,
        )
        del self._buffer[: len(chunk)]
        self._parts.append(part)
        self._size += len(chunk)
        logger.debug("uploaded part %s of %s (%s bytes)", part_number, self._key, len(chunk))


class WriterService(BaseService):
    """Opens chunked writers on new or existing upload sessions."""

    def __init__(
        self,
        store: ObjectStore,
        settings: Settings,
        *,
        pool: BufferPool,
        multiparts: MultipartService | None = None,
    ):
        super().__init__(store, settings)
        self._pool = pool
        self._multiparts = multiparts or MultipartService(store, settings)

    def writer(
        self, path: str, options: WriterOptions | None = None
    ) -> ChunkedWriter:
        """Start a new upload session for ``path`` and return a writer on it."""
        options = options or WriterOptions()
        multipart = self._multiparts.new_multipart(
            path, content_type=options.content_type
        )
        return self._open(multipart, options)

    def writer_with_append(
        self, path: str, options: WriterOptions | None = None
    ) -> ChunkedWriter:
        """Resume the open session for ``path`` with the most accepted bytes.

        Raises:
            PathNotFoundError: If ``path`` has no open session.
        """
        multipart = self._multiparts.get_multipart(path)
        return self._resume(path, multipart, options)

    def writer_with_append_by_upload_id(
        self, path: str, upload_id: str, options: WriterOptions | None = None
    ) -> ChunkedWriter:
        """Resume a known session of ``path``.

        Raises:
            PathNotFoundError: If the session doesn't exist.
        """
        multipart = self._multiparts.get_multipart_with_upload_id(path, upload_id)
        return self._resume(path, multipart, options)

    def _resume(
        self, path: str, multipart: Multipart, options: WriterOptions | None
    ) -> ChunkedWriter:
        with self.not_found_as(path):
            prefix = multipart.order_parts()
        logger.info(
            "resuming %s at %s bytes (%s parts)",
            multipart.key,
            prefix.size,
            prefix.count,
        )
        return self._open(multipart, options or WriterOptions(), prefix.items)

    def _open(
        self,
        multipart: Multipart,
        options: WriterOptions,
        parts: Sequence[Part] = (),
    ) -> ChunkedWriter:
        return ChunkedWriter(
            self._store,
            key=multipart.key,
            upload_id=multipart.upload_id,
            chunk_size=self._settings.S3_CHUNK_SIZE,
            pool=self._pool,
            parts=parts,
            options=options,
        )
