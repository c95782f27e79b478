from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024

# Value of S3_STORAGE_CLASS for endpoints that reject the storage class header.
NO_STORAGE_CLASS = "NONE"


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_positive_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@dataclass
class Settings:
    S3_BUCKET: str = ""
    S3_REGION: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_SESSION_TOKEN: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "auto"
    S3_USE_ACCELERATE: bool = False
    S3_USE_DUALSTACK: bool = False
    S3_ROOT_DIRECTORY: str = ""
    S3_CHUNK_SIZE: int = DEFAULT_CHUNK_SIZE
    S3_STORAGE_CLASS: str = "STANDARD"
    S3_OBJECT_ACL: str = "private"
    S3_CONTENT_TYPE: str = "application/octet-stream"
    S3_ENCRYPT: bool = False
    S3_KMS_KEY_ID: str | None = None
    S3_USER_AGENT: str | None = None
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if self.S3_CHUNK_SIZE <= 0:
            raise ValueError("S3_CHUNK_SIZE must be a positive number of bytes.")
        style = (self.S3_ADDRESSING_STYLE or "auto").strip().lower()
        if style not in {"auto", "path", "virtual"}:
            raise ValueError("S3_ADDRESSING_STYLE must be one of auto, path, virtual.")
        self.S3_ADDRESSING_STYLE = style

    @property
    def encryption_mode(self) -> str | None:
        if not self.S3_ENCRYPT:
            return None
        if self.S3_KMS_KEY_ID:
            return "aws:kms"
        return "AES256"

    @property
    def storage_class(self) -> str | None:
        if not self.S3_STORAGE_CLASS or self.S3_STORAGE_CLASS == NO_STORAGE_CLASS:
            return None
        return self.S3_STORAGE_CLASS

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_BUCKET=os.environ.get("S3_BUCKET", cls.S3_BUCKET),
            S3_REGION=os.environ.get("S3_REGION"),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL"),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_SESSION_TOKEN=os.environ.get("S3_SESSION_TOKEN"),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_USE_ACCELERATE=_as_bool(
                os.environ.get("S3_USE_ACCELERATE"), cls.S3_USE_ACCELERATE
            ),
            S3_USE_DUALSTACK=_as_bool(
                os.environ.get("S3_USE_DUALSTACK"), cls.S3_USE_DUALSTACK
            ),
            S3_ROOT_DIRECTORY=os.environ.get(
                "S3_ROOT_DIRECTORY", cls.S3_ROOT_DIRECTORY
            ),
            S3_CHUNK_SIZE=_as_positive_int(
                os.environ.get("S3_CHUNK_SIZE"), cls.S3_CHUNK_SIZE
            ),
            S3_STORAGE_CLASS=os.environ.get("S3_STORAGE_CLASS", cls.S3_STORAGE_CLASS),
            S3_OBJECT_ACL=os.environ.get("S3_OBJECT_ACL", cls.S3_OBJECT_ACL),
            S3_CONTENT_TYPE=os.environ.get("S3_CONTENT_TYPE", cls.S3_CONTENT_TYPE),
            S3_ENCRYPT=_as_bool(os.environ.get("S3_ENCRYPT"), cls.S3_ENCRYPT),
            S3_KMS_KEY_ID=os.environ.get("S3_KMS_KEY_ID"),
            S3_USER_AGENT=os.environ.get("S3_USER_AGENT"),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
