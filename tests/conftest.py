"""Pytest fixtures: settings, local backend on tmp_path, content store seeded with a user and a binary blob."""
import asyncio
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from content_store.core.config import Settings
from content_store.services.content_store import ContentStore
from content_store.services.storage.local import LocalStorage

TEST_CONTAINER = "test-container"
TEST_USER_ID = "elon-musk"
TEST_IMAGE_ID = "2018-tesla-model-x-p100d.jpg"
# JPEG SOI marker + some payload; content is opaque to the store
TEST_IMAGE_BYTES = b"\xff\xd8\xff\xe0" + bytes(range(256)) * 8


class SomeFakeUser(BaseModel):
    name: str
    age: int


@dataclass
class SomeFakeDataclassUser:
    name: str
    age: int


def make_test_user() -> SomeFakeUser:
    return SomeFakeUser(name="Elon Musk", age=40)


class SlowCopyStorage(LocalStorage):
    """Copies never finish on their own."""

    async def _copy(self, container, blob_id, source_uri, content_type):
        await asyncio.sleep(3600)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        local_storage_dir=str(tmp_path / "blobs"),
        copy_poll_interval_seconds=0.01,
        copy_timeout_seconds=5.0,
    )


@pytest.fixture
async def backend(settings):
    storage = LocalStorage(settings=settings)
    yield storage
    await storage.close()


@pytest.fixture
async def store(backend, settings):
    """Store with a user (JSON) and an image (raw bytes) already uploaded."""
    s = ContentStore(TEST_CONTAINER, backend=backend, settings=settings)
    await s.put(TEST_IMAGE_BYTES, TEST_IMAGE_ID, "image/jpeg")
    await s.put(make_test_user(), TEST_USER_ID)
    return s


@pytest.fixture
async def empty_store(backend, settings):
    return ContentStore(TEST_CONTAINER, backend=backend, settings=settings)
