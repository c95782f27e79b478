"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .buffer_pool import BufferPool, get_default_pool
from .client import (
    CompletedPart,
    DeleteFailure,
    ListPage,
    MultipartUpload,
    ObjectHead,
    ObjectNotFoundError,
    ObjectStore,
    ObjectSummary,
    Part,
    StorageError,
    WriteAttributes,
)

__all__ = [
    "BufferPool",
    "CompletedPart",
    "DeleteFailure",
    "ListPage",
    "MultipartUpload",
    "ObjectHead",
    "ObjectNotFoundError",
    "ObjectStore",
    "ObjectSummary",
    "Part",
    "StorageError",
    "WriteAttributes",
    "get_default_pool",
]
