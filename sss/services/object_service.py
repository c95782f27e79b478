"""Single-object operations and one-level listings.

These are thin pass-throughs to the object store that map paths onto keys and
the store's not-found answers onto :class:`PathNotFoundError`.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Callable, Optional

from sss.domain import SEPARATOR, FileInfo, FileInfoExtra
from sss.infra.storage.client import ObjectSummary, StorageError

from .base import BaseService, PathNotFoundError, ensure_dir_path
from .writer_service import WriterOptions

logger = logging.getLogger(__name__)

ListFn = Callable[[FileInfo], Optional[bool]]


def _is_subkey(key: str, prefix: str) -> bool:
    """Whether ``key`` is ``prefix`` itself or lies below it.

    Deleting "/a" must not delete "/ab".
    """
    if len(key) <= len(prefix) or prefix.endswith(SEPARATOR):
        return True
    return key[len(prefix)] == SEPARATOR


class ObjectService(BaseService):
    """Whole-object reads and writes, stat, list, copy and delete."""

    def put_content(
        self, path: str, data: bytes, options: WriterOptions | None = None
    ) -> None:
        options = options or WriterOptions()
        self._store.put_object(
            key=self.key_for(path),
            body=bytes(data),
            attributes=self.write_attributes(options.content_type),
            checksum_sha256=options.checksum_sha256,
        )

    def get_content(self, path: str) -> bytes:
        stream = self.reader(path)
        try:
            return stream.read()
        finally:
            stream.close()

    def reader(self, path: str, offset: int = 0, limit: int | None = None) -> BinaryIO:
        """Open ``path`` for reading from ``offset``.

        An offset past the end of the object yields an empty stream.

        Raises:
            PathNotFoundError: If the path doesn't exist.
        """
        with self.not_found_as(path):
            return self._store.get_object(
                key=self.key_for(path), offset=offset, limit=limit
            )

    def stat(self, path: str) -> FileInfo:
        """Describe ``path`` as a file or a directory.

        HEAD answers "not found" both for missing keys and for prefixes that
        only exist as parents of other keys, and "forbidden" when listing is
        allowed but HEAD is not, so any answer from the store falls back to a
        one-key listing. Transport failures are raised as they are.

        Raises:
            PathNotFoundError: If nothing exists at or below ``path``.
        """
        try:
            return self.stat_head(path)
        except StorageError as exc:
            if exc.code is None:
                raise
            logger.debug("HEAD %s failed with %s, listing instead", path, exc.code)
        with self.not_found_as(path):
            return self.stat_list(path)

    def stat_head(self, path: str) -> FileInfo:
        head = self._store.head_object(key=self.key_for(path))
        return FileInfo(
            path=path,
            is_dir=False,
            size=head.size_bytes,
            mod_time=head.last_modified,
            extra=FileInfoExtra(
                content_type=head.content_type,
                accept_ranges=head.accept_ranges,
                etag=head.etag,
                expires=head.expires,
            ),
        )

    def stat_list(self, path: str) -> FileInfo:
        """Stat by listing: the exact key is a file, keys below it make a directory.

        A sibling such as "/ab" does not make "/a" a directory.
        """
        key = self.key_for(path)
        first = self._first_key(key)
        if first is not None and first.key == key:
            return FileInfo(path=path, size=first.size, mod_time=first.last_modified)

        dir_prefix = key if not key or key.endswith(SEPARATOR) else key + SEPARATOR
        if dir_prefix != key:
            first = self._first_key(dir_prefix)
        if first is not None and first.key.startswith(dir_prefix):
            return FileInfo(path=path, is_dir=True)
        raise PathNotFoundError(path)

    def _first_key(self, prefix: str) -> ObjectSummary | None:
        pages = self._store.list_objects(prefix=prefix, max_keys=1)
        for page in pages:
            if page.contents:
                return page.contents[0]
            break
        return None

    def list(self, path: str, fn: ListFn) -> None:
        """Call ``fn`` for each entry directly below ``path``.

        Zero-length keys count as directories, as do the common prefixes the
        store folds deeper keys into. ``fn`` returns False to stop.
        """
        prefix = self.key_for(ensure_dir_path(path))
        with self.not_found_as(path):
            for page in self._store.list_objects(prefix=prefix, delimiter=SEPARATOR):
                for item in page.contents:
                    if item.key == prefix:
                        continue
                    info = FileInfo(
                        path=self.path_for(item.key),
                        is_dir=item.size == 0,
                        size=item.size,
                        mod_time=item.last_modified,
                    )
                    if fn(info) is False:
                        return
                for common_prefix in page.common_prefixes:
                    info = FileInfo(
                        path=self.path_for(common_prefix.rstrip(SEPARATOR)),
                        is_dir=True,
                    )
                    if fn(info) is False:
                        return

    def delete(self, path: str) -> None:
        with self.not_found_as(path):
            self._store.delete_object(key=self.key_for(path))

    def delete_all(self, path: str) -> int:
        """Delete everything stored at ``path`` and below it.

        The store gives no read-after-delete guarantee, so a listing taken
        right after this returns may still show some of the keys.

        Returns:
            The number of keys deleted.

        Raises:
            PathNotFoundError: If nothing exists at or below ``path``.
            StorageError: If the store refused to delete some keys.
        """
        prefix = self.key_for(path)
        deleted = 0
        for page in self._store.list_objects(prefix=prefix):
            keys = [item.key for item in page.contents if _is_subkey(item.key, prefix)]
            if not keys:
                continue
            failures = self._store.delete_objects(keys=keys)
            if failures:
                raise StorageError(
                    "Failed to delete objects: " + "; ".join(str(f) for f in failures)
                )
            deleted += len(keys)

        if not deleted:
            raise PathNotFoundError(path)
        logger.info("deleted %s keys below %s", deleted, path)
        return deleted

    def copy(self, source_path: str, dest_path: str) -> None:
        with self.not_found_as(source_path):
            self._store.copy_object(
                source_key=self.key_for(source_path),
                dest_key=self.key_for(dest_path),
                attributes=self.write_attributes(),
            )
