"""Object store protocol and data types.

This module defines the abstract interface the file store is built on:
multipart session management, flat key listings and the simple object
pass-through operations. Keys are raw store keys; mapping file paths onto
keys is the caller's business.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Iterator, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail.

    ``code`` carries the error code the store answered with, or None when the
    request never got an answer (connection failures and the like).
    """

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ObjectNotFoundError(StorageError):
    """Raised when the store reports a missing key or upload session."""


@dataclass(frozen=True, slots=True)
class Part:
    """One uploaded chunk of a multipart upload."""

    part_number: int
    size: int
    etag: str
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """An upload session known to the store."""

    upload_id: str
    key: str
    initiated: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """A single key from a listing."""

    key: str
    size: int
    last_modified: datetime | None = None
    etag: str | None = None


@dataclass(frozen=True, slots=True)
class ListPage:
    """One page of a key listing."""

    contents: Sequence[ObjectSummary] = field(default_factory=tuple)
    common_prefixes: Sequence[str] = field(default_factory=tuple)
    is_truncated: bool = False


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    last_modified: datetime | None = None
    accept_ranges: str | None = None
    expires: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteFailure:
    """A key the store refused to delete in a batch delete."""

    key: str
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.key}: {self.code} {self.message}".rstrip()


@dataclass(frozen=True, slots=True)
class WriteAttributes:
    """Attributes applied to newly written objects."""

    content_type: str | None = None
    acl: str | None = None
    storage_class: str | None = None
    server_side_encryption: str | None = None
    sse_kms_key_id: str | None = None


class ObjectStore(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here. Listing methods
    return iterators of pages so callers can stop early without fetching the
    remaining pages.
    """

    def create_multipart_upload(
        self,
        *,
        key: str,
        attributes: WriteAttributes | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Part:
        """Upload one numbered part and return what the store acknowledged.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def list_parts(self, *, key: str, upload_id: str) -> Iterator[Sequence[Part]]:
        """Yield pages of the parts recorded for an upload session.

        Raises:
            ObjectNotFoundError: If the session does not exist.
            StorageError: If the listing fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        checksum_sha256: str | None = None,
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(self, *, key: str, upload_id: str) -> None:
        """Abort a multipart upload and discard uploaded parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def list_multipart_uploads(
        self, *, prefix: str
    ) -> Iterator[Sequence[MultipartUpload]]:
        """Yield pages of in-progress upload sessions under a key prefix."""
        ...

    def list_objects(
        self,
        *,
        prefix: str,
        start_after: str | None = None,
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> Iterator[ListPage]:
        """Yield pages of keys in lexicographic order.

        Without a delimiter the listing is recursive. With one, keys below the
        next delimiter are folded into ``common_prefixes``.
        """
        ...

    def put_object(
        self,
        *,
        key: str,
        body: bytes,
        attributes: WriteAttributes | None = None,
        checksum_sha256: str | None = None,
    ) -> None:
        ...

    def get_object(
        self,
        *,
        key: str,
        offset: int = 0,
        limit: int | None = None,
    ) -> BinaryIO:
        """Open an object for reading, optionally from a byte offset.

        An offset at or beyond the end of the object yields an empty stream.

        Raises:
            ObjectNotFoundError: If the key doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, key: str) -> None:
        ...

    def delete_objects(self, *, keys: Sequence[str]) -> list[DeleteFailure]:
        """Delete a batch of keys, returning the keys the store refused."""
        ...

    def head_object(self, *, key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def copy_object(
        self,
        *,
        source_key: str,
        dest_key: str,
        attributes: WriteAttributes | None = None,
    ) -> None:
        ...
