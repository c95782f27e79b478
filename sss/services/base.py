from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sss.common.config import Settings
from sss.domain import SEPARATOR
from sss.infra.storage.client import ObjectNotFoundError, ObjectStore, WriteAttributes


class ServiceError(Exception):
    """Base class for file store level exceptions."""


class PathNotFoundError(ServiceError):
    """Raised when a path or upload session does not exist in the store."""

    def __init__(self, path: str, detail: str = "path not found") -> None:
        super().__init__(f"{detail}: {path}")
        self.path = path


class AlreadyFinalizedError(ServiceError):
    """Raised when a writer is used after close, commit or cancel."""

    def __init__(self, state: str) -> None:
        super().__init__(f"already {state}")
        self.state = state


class NoPartsError(ServiceError):
    """Raised when committing an upload that has no parts."""


class BaseService:
    """Path mapping and store wiring shared by the file store services."""

    def __init__(self, store: ObjectStore, settings: Settings):
        self._store = store
        self._settings = settings

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    def key_for(self, path: str) -> str:
        """Map a file path onto a store key below the root directory."""
        root = (self._settings.S3_ROOT_DIRECTORY or "").rstrip(SEPARATOR)
        return (root + path).lstrip(SEPARATOR)

    def path_for(self, key: str) -> str:
        """Map a store key back onto a file path."""
        root_key = self.key_for("")
        if not root_key:
            return SEPARATOR + key
        if key.startswith(root_key):
            return key[len(root_key) :]
        return key

    def write_attributes(self, content_type: str | None = None) -> WriteAttributes:
        return WriteAttributes(
            content_type=content_type or self._settings.S3_CONTENT_TYPE,
            acl=self._settings.S3_OBJECT_ACL or None,
            storage_class=self._settings.storage_class,
            server_side_encryption=self._settings.encryption_mode,
            sse_kms_key_id=self._settings.S3_KMS_KEY_ID or None,
        )

    @contextmanager
    def not_found_as(self, path: str) -> Generator[None, None, None]:
        """Translate the store's not-found signal into a path-qualified error."""
        try:
            yield
        except ObjectNotFoundError as exc:
            raise PathNotFoundError(path) from exc


def ensure_dir_path(path: str) -> str:
    """Return ``path`` with a trailing separator, leaving the root alone."""
    if path and path != SEPARATOR and not path.endswith(SEPARATOR):
        return path + SEPARATOR
    return path
