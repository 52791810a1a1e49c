"""Storage backend interface: container create, object put/get/head/delete and server-side copy. Implementations: local (dev disk) or S3."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from content_store.services.properties import ObjectProperties


class CopyStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ContainerHandle:
    """A resolved container. created is True only when this call created it."""

    name: str
    created: bool = False


class CopyTracker:
    """Tracks in-flight copies per (container, blob id) as asyncio tasks.

    start() returns as soon as the copy is scheduled; status() reports the task's state.
    """

    def __init__(self) -> None:
        self._tasks: dict[tuple[str, str], asyncio.Task] = {}

    def start(self, container: str, blob_id: str, copy: Callable[[], Awaitable[None]]) -> None:
        key = (container, blob_id)
        previous = self._tasks.get(key)
        if previous is not None and not previous.done():
            previous.cancel()
        self._tasks[key] = asyncio.create_task(copy(), name=f"copy:{container}/{blob_id}")

    def status(self, container: str, blob_id: str) -> CopyStatus | None:
        """None when no copy was started for this id."""
        task = self._tasks.get((container, blob_id))
        if task is None:
            return None
        if not task.done():
            return CopyStatus.PENDING
        if task.cancelled():
            return CopyStatus.ABORTED
        if task.exception() is not None:
            return CopyStatus.FAILED
        return CopyStatus.SUCCESS

    def error(self, container: str, blob_id: str) -> BaseException | None:
        task = self._tasks.get((container, blob_id))
        if task is None or not task.done() or task.cancelled():
            return None
        return task.exception()

    def forget(self, container: str, blob_id: str) -> None:
        self._tasks.pop((container, blob_id), None)

    async def cancel(self, container: str, blob_id: str) -> None:
        """Stop the copy for this id (if still running) and drop it."""
        task = self._tasks.pop((container, blob_id), None)
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        pending = [t for t in self._tasks.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()


class StorageBackend(ABC):
    """Abstract object store: the only capabilities the content store relies on."""

    def __init__(self) -> None:
        self._copies = CopyTracker()

    @abstractmethod
    async def create_container_if_absent(self, name: str) -> ContainerHandle:
        """Create the container when missing. Raise ProvisioningError if the client or container can't be set up."""
        ...

    @abstractmethod
    async def object_exists(self, container: ContainerHandle, blob_id: str) -> bool:
        ...

    @abstractmethod
    async def upload_object(
        self,
        container: ContainerHandle,
        blob_id: str,
        data: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Write data to blob_id, replacing any existing object. content_type None = provider default."""
        ...

    @abstractmethod
    async def download_object(self, container: ContainerHandle, blob_id: str) -> bytes:
        """Return the full content. Caller has checked existence."""
        ...

    @abstractmethod
    async def delete_object(self, container: ContainerHandle, blob_id: str) -> None:
        ...

    @abstractmethod
    async def fetch_properties(
        self, container: ContainerHandle, blob_id: str
    ) -> tuple[ObjectProperties, dict[str, str]]:
        """Return (known properties, custom metadata). Raise FileNotFoundError if missing."""
        ...

    @abstractmethod
    async def _copy(
        self,
        container: ContainerHandle,
        blob_id: str,
        source_uri: str,
        content_type: str | None,
    ) -> None:
        """Transfer source_uri into blob_id. Runs as a tracked background task."""
        ...

    async def start_copy(
        self,
        container: ContainerHandle,
        blob_id: str,
        source_uri: str,
        content_type: str | None = None,
    ) -> None:
        """Begin copying source_uri into blob_id and return without waiting for completion."""
        self._copies.start(
            container.name,
            blob_id,
            lambda: self._copy(container, blob_id, source_uri, content_type),
        )

    async def fetch_copy_status(self, container: ContainerHandle, blob_id: str) -> CopyStatus:
        status = self._copies.status(container.name, blob_id)
        if status is not None:
            return status
        # Nothing tracked: an existing object is a finished copy, a missing one a failed one
        if await self.object_exists(container, blob_id):
            return CopyStatus.SUCCESS
        return CopyStatus.FAILED

    def copy_error(self, container: ContainerHandle, blob_id: str) -> BaseException | None:
        """Exception that ended a failed copy, if any."""
        return self._copies.error(container.name, blob_id)

    def finish_copy(self, container: ContainerHandle, blob_id: str) -> None:
        """Release a copy whose terminal state has been read."""
        self._copies.forget(container.name, blob_id)

    async def abort_copy(self, container: ContainerHandle, blob_id: str) -> None:
        """Cancel a copy nobody is waiting for any more."""
        await self._copies.cancel(container.name, blob_id)

    async def close(self) -> None:
        await self._copies.close()
