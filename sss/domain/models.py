from __future__ import annotations

import enum
import posixpath
import stat
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

from sss.infra.storage.client import Part


@dataclass(frozen=True, slots=True)
class ValidPart:
    part: Part


@dataclass(frozen=True, slots=True)
class ConflictedPart:
    """Two listings disagreed about this part number."""

    part_number: int


PartOutcome = Union[ValidPart, ConflictedPart]


@dataclass(frozen=True, slots=True)
class Parts:
    """An ordered run of parts with its total size.

    ``last_modified`` is the earliest modification time among the items, or
    the time the result was built when no item carries one.
    """

    items: tuple[Part, ...] = ()
    size: int = 0
    last_modified: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def chunk_size(self) -> int:
        return self.items[0].size if self.items else 0

    @classmethod
    def collect(cls, parts: tuple[Part, ...]) -> "Parts":
        now = datetime.now(timezone.utc)
        stamps = [p.last_modified for p in parts if p.last_modified is not None]
        earliest = min([now, *stamps], key=_sort_key)
        return cls(
            items=parts,
            size=sum(p.size for p in parts),
            last_modified=earliest,
        )


def _sort_key(value: datetime) -> datetime:
    # Naive timestamps from fakes compare as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class FileInfoExtra:
    """HEAD response details that have no place in a plain file info."""

    content_type: str | None = None
    accept_ranges: str | None = None
    etag: str | None = None
    expires: str | None = None


@dataclass(frozen=True, slots=True)
class FileInfo:
    """A file or an inferred directory in the hierarchical view."""

    path: str
    is_dir: bool = False
    size: int = 0
    mod_time: datetime | None = None
    extra: FileInfoExtra | None = None

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def mode(self) -> int:
        if self.is_dir:
            return stat.S_IFDIR | 0o755
        return 0o644


class WalkSignal(enum.Enum):
    """What a walk callback wants to happen next."""

    CONTINUE = "continue"
    SKIP_DIR = "skip_dir"
    STOP = "stop"
