"""Resumable, hierarchical file store on top of S3-compatible object storage."""

from .client import SSS
from .common.logging import setup_logging
from .domain import FileInfo, WalkSignal
from .infra.storage import BufferPool, ObjectNotFoundError, StorageError
from .services import (
    AlreadyFinalizedError,
    ChunkedWriter,
    Multipart,
    NoPartsError,
    PathNotFoundError,
    ServiceError,
    StoreFileSystem,
    WriterOptions,
    directory_diff,
)

__all__ = [
    "SSS",
    "AlreadyFinalizedError",
    "BufferPool",
    "ChunkedWriter",
    "FileInfo",
    "Multipart",
    "NoPartsError",
    "ObjectNotFoundError",
    "PathNotFoundError",
    "ServiceError",
    "StorageError",
    "StoreFileSystem",
    "WalkSignal",
    "WriterOptions",
    "directory_diff",
    "setup_logging",
]
