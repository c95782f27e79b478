from __future__ import annotations

import pytest

from sss.client import SSS
from sss.common.config import Settings, get_settings
from sss.infra.storage.buffer_pool import BufferPool
from tests.services.mock_storage import MockObjectStore

CHUNK = 4


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def settings():
    return Settings(S3_BUCKET="test-bucket", S3_CHUNK_SIZE=CHUNK)


@pytest.fixture()
def store():
    return MockObjectStore(page_size=2)


@pytest.fixture()
def pool():
    return BufferPool()


@pytest.fixture()
def sss(settings, store, pool):
    return SSS(settings=settings, store=store, pool=pool)
