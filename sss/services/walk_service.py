"""Depth-first walk over a flat key namespace.

Without a delimiter the store lists every key under a prefix recursively, in
lexicographic order, and never mentions directories. Keys sorted that way are
already in depth-first order, so directories can be inferred by comparing
each key's parent with the last directory emitted. A skipped directory is
handled by dropping every later entry below it; for the usual shape of a
bucket this is far cheaper than listing each directory separately.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Callable, Optional

from sss.domain import SEPARATOR, FileInfo, WalkSignal

from .base import BaseService, ensure_dir_path

logger = logging.getLogger(__name__)

WalkFn = Callable[[FileInfo], Optional[WalkSignal]]


def directory_diff(prev: str, current: str) -> list[str]:
    """Directories between ``prev`` and ``current`` that have not been seen yet.

    Returned from the shallowest newly entered directory down to the parent
    of ``current``.

    Examples::

        directory_diff("/path/to/folder", "/path/to/folder/folder/file")
        # => ["/path/to/folder/folder"]
        directory_diff("/path/to/folder/folder1", "/path/to/folder/folder2/file")
        # => ["/path/to/folder/folder2"]
        directory_diff("/", "/path/to/file")
        # => ["/path", "/path/to"]
    """
    paths: list[str] = []
    if not prev or not current:
        return paths

    parent = current
    while True:
        parent = posixpath.dirname(parent)
        if (
            parent in (SEPARATOR, "")
            or parent == prev
            or (prev + SEPARATOR).startswith(parent + SEPARATOR)
        ):
            break
        paths.append(parent)
    paths.reverse()
    return paths


def _under(path: str, directory: str) -> bool:
    return path == directory or path.startswith(directory + SEPARATOR)


@dataclass
class WalkCursor:
    previous_directory: str
    skip_prefix: str = ""

    def skipping(self, path: str) -> bool:
        if not self.skip_prefix:
            return False
        if _under(path, self.skip_prefix):
            return True
        self.skip_prefix = ""
        return False


class WalkService(BaseService):
    """Walks a subtree of the store as a hierarchy of files and directories."""

    def walk(
        self,
        root: str,
        fn: WalkFn,
        *,
        start_after_hint: str | None = None,
    ) -> int:
        """Call ``fn`` for every directory and file below ``root``, depth first.

        ``fn`` returns :attr:`WalkSignal.SKIP_DIR` to leave out everything
        below the directory it was just given, :attr:`WalkSignal.STOP` to end
        the walk early, or ``None``/:attr:`WalkSignal.CONTINUE`. Anything it
        raises aborts the walk and propagates.

        ``start_after_hint`` lets the listing start at the first key after
        the given path; a store may ignore it.

        Returns:
            The number of entries passed to ``fn``.
        """
        cursor = WalkCursor(previous_directory=root)
        prefix = self.key_for(ensure_dir_path(root))
        if prefix and not prefix.endswith(SEPARATOR):
            prefix += SEPARATOR
        start_after = self.key_for(start_after_hint) if start_after_hint else None

        count = 0
        pages = self._store.list_objects(prefix=prefix, start_after=start_after)
        for page in pages:
            for entry in self._entries(page.contents, cursor):
                if cursor.skipping(entry.path):
                    continue
                count += 1
                signal = fn(entry)
                if signal is WalkSignal.SKIP_DIR:
                    cursor.skip_prefix = entry.path
                elif signal is WalkSignal.STOP:
                    logger.debug("walk of %s stopped after %s entries", root, count)
                    return count
        return count

    def _entries(self, contents, cursor: WalkCursor):
        for item in contents:
            path = self.path_for(item.key)
            for directory in directory_diff(cursor.previous_directory, path):
                cursor.previous_directory = directory
                yield FileInfo(path=directory, is_dir=True)
            if path.endswith(SEPARATOR):
                continue
            yield FileInfo(
                path=path,
                is_dir=False,
                size=item.size,
                mod_time=item.last_modified,
            )

