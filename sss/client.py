from __future__ import annotations

import logging
from typing import BinaryIO, Callable, Optional

from sss.common.config import Settings, get_settings
from sss.common.logging import setup_logging
from sss.domain import SEPARATOR, FileInfo
from sss.infra.storage.buffer_pool import BufferPool, get_default_pool
from sss.infra.storage.client import ObjectStore
from sss.infra.storage.s3_client import S3ObjectStore
from sss.services.fs_service import StoreFileSystem
from sss.services.multipart_service import Multipart, MultipartService
from sss.services.object_service import ListFn, ObjectService
from sss.services.walk_service import WalkFn, WalkService
from sss.services.writer_service import ChunkedWriter, WriterOptions, WriterService

startup_logger = logging.getLogger("sss.startup")


class SSS:
    """An S3 bucket seen as a resumable, hierarchical file store.

    Services are built lazily and share one store, one settings object and
    one buffer pool. Without arguments everything comes from the
    environment.

    Example::

        store = SSS()
        with store.writer("/logs/today.log") as w:
            w.write(b"...")
            w.commit()
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        store: ObjectStore | None = None,
        pool: BufferPool | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._pool = pool or get_default_pool()
        self._objects: ObjectService | None = None
        self._multiparts: MultipartService | None = None
        self._writers: WriterService | None = None
        self._walker: WalkService | None = None

    def __repr__(self) -> str:
        return f"SSS(bucket={self._settings.S3_BUCKET!r})"

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            self._store = S3ObjectStore(settings=self._settings)
            startup_logger.info(
                "using bucket %s (root %r, chunk size %s)",
                self._settings.S3_BUCKET,
                self._settings.S3_ROOT_DIRECTORY or "/",
                self._settings.S3_CHUNK_SIZE,
            )
        return self._store

    @property
    def pool(self) -> BufferPool:
        return self._pool

    def configure_logging(self) -> None:
        """Install JSON logging at the configured ``LOG_LEVEL``."""
        setup_logging(self._settings.LOG_LEVEL)

    def objects(self) -> ObjectService:
        if self._objects is None:
            self._objects = ObjectService(self.store, self._settings)
        return self._objects

    def multiparts(self) -> MultipartService:
        if self._multiparts is None:
            self._multiparts = MultipartService(self.store, self._settings)
        return self._multiparts

    def writers(self) -> WriterService:
        if self._writers is None:
            self._writers = WriterService(
                self.store,
                self._settings,
                pool=self._pool,
                multiparts=self.multiparts(),
            )
        return self._writers

    def walker(self) -> WalkService:
        if self._walker is None:
            self._walker = WalkService(self.store, self._settings)
        return self._walker

    # Writers

    def writer(self, path: str, options: WriterOptions | None = None) -> ChunkedWriter:
        return self.writers().writer(path, options)

    def writer_with_append(
        self, path: str, options: WriterOptions | None = None
    ) -> ChunkedWriter:
        return self.writers().writer_with_append(path, options)

    def writer_with_append_by_upload_id(
        self, path: str, upload_id: str, options: WriterOptions | None = None
    ) -> ChunkedWriter:
        return self.writers().writer_with_append_by_upload_id(path, upload_id, options)

    # Upload sessions

    def new_multipart(self, path: str, options: WriterOptions | None = None) -> Multipart:
        content_type = options.content_type if options else None
        return self.multiparts().new_multipart(path, content_type=content_type)

    def list_multipart(
        self, path: str, fn: Callable[[Multipart], Optional[bool]]
    ) -> None:
        self.multiparts().list_multipart(path, fn)

    def get_multipart(self, path: str) -> Multipart:
        return self.multiparts().get_multipart(path)

    def get_multipart_by_upload_id(self, path: str, upload_id: str) -> Multipart:
        return self.multiparts().get_multipart_by_upload_id(path, upload_id)

    def get_multipart_with_upload_id(self, path: str, upload_id: str) -> Multipart:
        return self.multiparts().get_multipart_with_upload_id(path, upload_id)

    # Objects

    def put_content(
        self, path: str, data: bytes, options: WriterOptions | None = None
    ) -> None:
        self.objects().put_content(path, data, options)

    def get_content(self, path: str) -> bytes:
        return self.objects().get_content(path)

    def reader(self, path: str, offset: int = 0, limit: int | None = None) -> BinaryIO:
        return self.objects().reader(path, offset=offset, limit=limit)

    def stat(self, path: str) -> FileInfo:
        return self.objects().stat(path)

    def list(self, path: str, fn: ListFn) -> None:
        self.objects().list(path, fn)

    def delete(self, path: str) -> None:
        self.objects().delete(path)

    def delete_all(self, path: str) -> int:
        return self.objects().delete_all(path)

    def copy(self, source_path: str, dest_path: str) -> None:
        self.objects().copy(source_path, dest_path)

    # Hierarchy

    def walk(
        self, root: str, fn: WalkFn, *, start_after_hint: str | None = None
    ) -> int:
        return self.walker().walk(root, fn, start_after_hint=start_after_hint)

    def fs(self, directory: str = SEPARATOR) -> StoreFileSystem:
        return StoreFileSystem(self.objects(), directory)
