"""Lazy container provisioning: single-flight, memoized on success only."""
import asyncio

import pytest

from content_store.core.errors import InvalidArgumentError, ProvisioningError
from content_store.services.content_store import ContentStore
from content_store.services.storage.local import LocalStorage

from tests.conftest import TEST_CONTAINER


class CountingStorage(LocalStorage):
    def __init__(self, *args, failures: int = 0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = 0
        self.failures = failures

    async def create_container_if_absent(self, name):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.calls <= self.failures:
            raise RuntimeError("connection refused")
        return await super().create_container_if_absent(name)


async def test_concurrent_first_calls_create_once(settings):
    backend = CountingStorage(settings=settings)
    store = ContentStore(TEST_CONTAINER, backend=backend, settings=settings)

    handles = await asyncio.gather(*(store.resolve() for _ in range(10)))

    assert backend.calls == 1
    assert all(h is handles[0] for h in handles)
    assert handles[0].name == TEST_CONTAINER


async def test_handle_reused_by_operations(settings):
    backend = CountingStorage(settings=settings)
    store = ContentStore(TEST_CONTAINER, backend=backend, settings=settings)

    await asyncio.gather(*(store.put(f"v{i}") for i in range(5)))
    await store.get_stream("missing")

    assert backend.calls == 1


async def test_first_resolve_creates_then_attaches(settings):
    first = ContentStore(TEST_CONTAINER, backend=LocalStorage(settings=settings), settings=settings)
    second = ContentStore(TEST_CONTAINER, backend=LocalStorage(settings=settings), settings=settings)

    assert (await first.resolve()).created is True
    assert (await second.resolve()).created is False


async def test_failure_is_not_memoized(settings):
    backend = CountingStorage(settings=settings, failures=1)
    store = ContentStore(TEST_CONTAINER, backend=backend, settings=settings)

    with pytest.raises(ProvisioningError) as exc_info:
        await store.put("some text")
    assert isinstance(exc_info.value.__cause__, RuntimeError)

    blob_id = await store.put("some text")

    assert backend.calls == 2
    assert await store.get(blob_id) == "some text"


async def test_unwritable_root_raises_provisioning_error(settings, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = ContentStore(TEST_CONTAINER, backend=LocalStorage(root=blocker, settings=settings), settings=settings)

    with pytest.raises(ProvisioningError):
        await store.resolve()


@pytest.mark.parametrize("name", [None, "", "   "])
def test_container_name_required(settings, name):
    with pytest.raises(InvalidArgumentError):
        ContentStore(name, backend=LocalStorage(settings=settings), settings=settings)


async def test_store_owns_default_backend(settings):
    store = ContentStore(TEST_CONTAINER, settings=settings)

    assert isinstance(store.backend, LocalStorage)
    assert store.name == TEST_CONTAINER
    async with store:
        blob_id = await store.put(123)
        assert await store.get(blob_id, int) == 123
