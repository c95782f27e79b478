from .base import (
    AlreadyFinalizedError,
    BaseService,
    NoPartsError,
    PathNotFoundError,
    ServiceError,
)
from .fs_service import RangeReader, StoreFile, StoreFileSystem
from .multipart_service import (
    InvalidPartError,
    Multipart,
    MultipartService,
    reconcile_parts,
    trusted_prefix,
)
from .object_service import ObjectService
from .walk_service import WalkCursor, WalkService, directory_diff
from .writer_service import ChunkedWriter, WriterOptions, WriterService

__all__ = [
    "AlreadyFinalizedError",
    "BaseService",
    "ChunkedWriter",
    "InvalidPartError",
    "Multipart",
    "MultipartService",
    "NoPartsError",
    "ObjectService",
    "PathNotFoundError",
    "RangeReader",
    "ServiceError",
    "StoreFile",
    "StoreFileSystem",
    "WalkCursor",
    "WalkService",
    "WriterOptions",
    "WriterService",
    "directory_diff",
    "reconcile_parts",
    "trusted_prefix",
]
