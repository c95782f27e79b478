"""Read-only file-system view over the store.

``StoreFileSystem`` resolves names below a base directory and hands out
``StoreFile`` objects that stat lazily and read through a seekable
``RangeReader``.
"""

from __future__ import annotations

import io
import logging
import posixpath
from datetime import datetime
from typing import BinaryIO, Callable, Optional

from sss.domain import SEPARATOR, FileInfo

from .object_service import ObjectService

logger = logging.getLogger(__name__)

Opener = Callable[[int], BinaryIO]


class RangeReader(io.RawIOBase):
    """Seekable reader over an object of known size.

    Every read after a seek opens a new ranged GET at the current offset; a
    stream that ends before ``size`` is reopened once from where it stopped.
    """

    def __init__(self, opener: Opener, size: int) -> None:
        super().__init__()
        self._opener = opener
        self._size = size
        self._offset = 0
        self._current: BinaryIO | None = None

    @property
    def size(self) -> int:
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._offset

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if self._offset >= self._size or len(buffer) == 0:
            return 0

        for _ in range(2):
            if self._current is None:
                self._current = self._opener(self._offset)
            data = self._current.read(min(len(buffer), self._size - self._offset))
            if data:
                count = len(data)
                buffer[:count] = data
                self._offset += count
                return count
            self._drop_current()
            if self._offset >= self._size:
                break
        return 0

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._offset + offset
        elif whence == io.SEEK_END:
            target = self._size + offset
        else:
            raise ValueError(f"invalid whence ({whence})")

        if target < 0:
            raise ValueError("negative seek position")
        target = min(target, self._size)
        if target != self._offset:
            self._drop_current()
        self._offset = target
        return target

    def close(self) -> None:
        self._drop_current()
        super().close()

    def _drop_current(self) -> None:
        if self._current is not None:
            current, self._current = self._current, None
            current.close()


class StoreFile:
    """A file or directory of the store, opened by name."""

    def __init__(self, objects: ObjectService, path: str) -> None:
        self._objects = objects
        self._path = path
        self._info: FileInfo | None = None
        self._reader: RangeReader | None = None

    def __enter__(self) -> "StoreFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"StoreFile(path={self._path!r})"

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return posixpath.basename(self._path)

    def stat(self) -> FileInfo:
        """Stat on first use and cache the answer.

        Raises:
            PathNotFoundError: If nothing exists at the path.
        """
        if self._info is None:
            self._info = self._objects.stat(self._path)
        return self._info

    @property
    def size(self) -> int:
        return self.stat().size

    @property
    def mod_time(self) -> Optional[datetime]:
        return self.stat().mod_time

    @property
    def is_dir(self) -> bool:
        return self.stat().is_dir

    @property
    def mode(self) -> int:
        return self.stat().mode

    def read(self, size: int = -1) -> bytes:
        return self._ensure_reader().read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._ensure_reader().seek(offset, whence)

    def tell(self) -> int:
        return self._ensure_reader().tell()

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def read_dir(self, n: int = 0) -> list["StoreFile"]:
        """Entries directly below this directory, at most ``n`` when positive."""
        entries: list[StoreFile] = []

        def collect(info: FileInfo) -> bool:
            entry = StoreFile(self._objects, info.path)
            entry._info = info
            entries.append(entry)
            return not (n > 0 and len(entries) >= n)

        self._objects.list(self._path, collect)
        return entries

    def _ensure_reader(self) -> RangeReader:
        if self._reader is None:
            self._reader = RangeReader(
                lambda offset: self._objects.reader(self._path, offset=offset),
                self.size,
            )
        return self._reader


class StoreFileSystem:
    """Names resolved below ``directory``, read-only."""

    def __init__(self, objects: ObjectService, directory: str = SEPARATOR) -> None:
        self._objects = objects
        self._directory = directory or SEPARATOR

    @property
    def directory(self) -> str:
        return self._directory

    def _join(self, name: str) -> str:
        return posixpath.normpath(posixpath.join(self._directory, name.lstrip(SEPARATOR)))

    def open(self, name: str) -> StoreFile:
        return StoreFile(self._objects, self._join(name))

    def stat(self, name: str) -> FileInfo:
        return self.open(name).stat()

    def read_dir(self, name: str = ".") -> list[StoreFile]:
        return self.open(name).read_dir()

    def read_file(self, name: str) -> bytes:
        return self._objects.get_content(self._join(name))

    def sub(self, name: str) -> "StoreFileSystem":
        return StoreFileSystem(self._objects, self._join(name))
