"""Multipart upload sessions and part reconciliation.

A :class:`Multipart` is a handle on one upload session in the store. Besides
the explicit parallel-part API (``upload_part`` from any number of workers,
then a single ``commit``), it rebuilds the part state of an interrupted
session so a writer can resume without re-sending accepted bytes.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from sss.domain import ConflictedPart, PartOutcome, Parts, ValidPart
from sss.infra.storage.client import (
    CompletedPart,
    ObjectNotFoundError,
    ObjectStore,
    Part,
)

from .base import BaseService, NoPartsError, PathNotFoundError, ServiceError

logger = logging.getLogger(__name__)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000


class InvalidPartError(ServiceError):
    """Raised when a part number falls outside the range the store accepts."""


def reconcile_parts(listed: Iterable[Part]) -> list[Part]:
    """Drop part numbers the store reported inconsistently.

    A part number seen twice with a different size or etag was re-uploaded
    while the listing ran; neither version can be trusted, so the number is
    excluded entirely. A later re-upload of that number resolves it.
    """
    outcomes: dict[int, PartOutcome] = {}
    for part in listed:
        seen = outcomes.get(part.part_number)
        if seen is None:
            outcomes[part.part_number] = ValidPart(part)
            continue
        if isinstance(seen, ConflictedPart):
            continue
        if seen.part.size != part.size or seen.part.etag != part.etag:
            logger.debug(
                "conflicting records for part %s (%s/%s vs %s/%s)",
                part.part_number,
                seen.part.size,
                seen.part.etag,
                part.size,
                part.etag,
            )
            outcomes[part.part_number] = ConflictedPart(part.part_number)

    survivors = [o.part for o in outcomes.values() if isinstance(o, ValidPart)]
    return sorted(survivors, key=lambda p: p.part_number)


def trusted_prefix(candidates: Sequence[Part]) -> Parts:
    """Return the longest dense, uniformly sized run of parts from part 1.

    The chunk size is the size of part 1. The scan stops at the first gap in
    numbering or the first part of another size; everything after it is
    discarded, including a shorter tail part.
    """
    ordered = sorted(candidates, key=lambda p: p.part_number)
    if not ordered or ordered[0].part_number != 1:
        return Parts()

    chunk_size = ordered[0].size
    accepted: list[Part] = []
    for position, part in enumerate(ordered, start=1):
        if part.part_number != position or part.size != chunk_size:
            break
        accepted.append(part)
    return Parts.collect(tuple(accepted))


class Multipart:
    """One multipart upload session against a key."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        key: str,
        upload_id: str,
        parts: Sequence[Part] | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._upload_id = upload_id
        self._parts: list[Part] = list(parts or ())
        self._pinned = parts is not None

    def __repr__(self) -> str:
        return f"Multipart(key={self._key!r}, upload_id={self._upload_id!r})"

    @property
    def key(self) -> str:
        return self._key

    @property
    def upload_id(self) -> str:
        return self._upload_id

    @property
    def parts(self) -> tuple[Part, ...]:
        return tuple(self._parts)

    def set_parts(self, parts: Sequence[Part]) -> None:
        """Pin the parts :meth:`commit` completes with, skipping the listing."""
        self._parts = list(parts)
        self._pinned = True

    def resume(self) -> None:
        """Reload the conflict-free part set the store has for this session.

        Raises:
            ObjectNotFoundError: If the session no longer exists.
            StorageError: If listing the parts fails.
        """
        listed: list[Part] = []
        for page in self._store.list_parts(key=self._key, upload_id=self._upload_id):
            listed.extend(page)
        self._parts = reconcile_parts(listed)

    def _ensure_parts(self) -> None:
        if not self._parts:
            self.resume()

    def all_parts(self) -> Parts:
        """Every known part without pruning, for inspection."""
        self._ensure_parts()
        return Parts.collect(tuple(self._parts))

    def order_parts(self) -> Parts:
        """The trusted prefix a writer can resume from."""
        self._ensure_parts()
        trusted = trusted_prefix(self._parts)
        if trusted.count != len(self._parts):
            logger.info(
                "resumable prefix of %s ends at part %s of %s",
                self._key,
                trusted.count,
                len(self._parts),
            )
        return trusted

    def upload_part(self, part_number: int, body: bytes) -> Part:
        """Upload one numbered part of this session.

        Distinct part numbers may be uploaded concurrently from different
        workers; nothing on this handle is mutated.

        Raises:
            InvalidPartError: If ``part_number`` is outside 1..10000.
            StorageError: If the upload fails.
        """
        if part_number <= 0 or part_number > MAX_PART_NUMBER:
            raise InvalidPartError(
                f"part_number must be between 1 and {MAX_PART_NUMBER}"
            )
        return self._store.upload_part(
            key=self._key,
            upload_id=self._upload_id,
            part_number=int(part_number),
            body=bytes(body),
        )

    def commit(self, *, checksum_sha256: str | None = None) -> None:
        """Complete the session from every part the store holds.

        The parts are listed again first, so parts uploaded after an earlier
        inspection are included. Parts pinned with :meth:`set_parts` are used
        as given.

        Raises:
            NoPartsError: If the session has no parts.
            StorageError: If listing or completing fails.
        """
        if not self._pinned:
            self.resume()
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
            checksum_sha256=checksum_sha256,
        )
        logger.info("committed %s (%s parts)", self._key, len(completed))

    def cancel(self) -> None:
        self._store.abort_multipart_upload(key=self._key, upload_id=self._upload_id)
        logger.info("cancelled upload %s of %s", self._upload_id, self._key)


class MultipartService(BaseService):
    """Creates and looks up upload sessions by path."""

    def new_multipart(
        self, path: str, *, content_type: str | None = None
    ) -> Multipart:
        upload = self._store.create_multipart_upload(
            key=self.key_for(path),
            attributes=self.write_attributes(content_type),
        )
        logger.info("created upload %s for %s", upload.upload_id, upload.key)
        return Multipart(self._store, key=upload.key, upload_id=upload.upload_id)

    def list_multipart(
        self, path: str, fn: Callable[[Multipart], Optional[bool]]
    ) -> None:
        """Call ``fn`` for each open session whose key starts with ``path``'s key.

        ``fn`` returns False to stop.
        """
        with self.not_found_as(path):
            pages = self._store.list_multipart_uploads(prefix=self.key_for(path))
            for page in pages:
                for upload in page:
                    multipart = Multipart(
                        self._store, key=upload.key, upload_id=upload.upload_id
                    )
                    if fn(multipart) is False:
                        return

    def get_multipart(self, path: str) -> Multipart:
        """The session for ``path`` with the most resumable bytes.

        Raises:
            PathNotFoundError: If no session exists for the exact key.
        """
        key = self.key_for(path)
        candidates: list[Multipart] = []

        def collect(multipart: Multipart) -> bool:
            if multipart.key == key:
                candidates.append(multipart)
            return True

        self.list_multipart(path, collect)
        if not candidates:
            raise PathNotFoundError(path, "multipart upload not found")
        if len(candidates) == 1:
            return candidates[0]
        return max(candidates, key=self._resumable_size)

    def get_multipart_by_upload_id(self, path: str, upload_id: str) -> Multipart:
        """Find a listed session by upload id.

        Raises:
            PathNotFoundError: If the store lists no such session for ``path``.
        """
        key = self.key_for(path)
        found: list[Multipart] = []

        def match(multipart: Multipart) -> bool:
            if multipart.key == key and multipart.upload_id == upload_id:
                found.append(multipart)
                return False
            return True

        self.list_multipart(path, match)
        if not found:
            raise PathNotFoundError(
                path, f"multipart upload {upload_id} not found"
            )
        return found[0]

    def get_multipart_with_upload_id(self, path: str, upload_id: str) -> Multipart:
        """A handle on a known session, without asking the store."""
        return Multipart(self._store, key=self.key_for(path), upload_id=upload_id)

    @staticmethod
    def _resumable_size(multipart: Multipart) -> int:
        try:
            return multipart.order_parts().size
        except ObjectNotFoundError:
            logger.debug("upload %s vanished while resolving", multipart.upload_id)
            return 0
