"""ContentStore: put/get/delete typed or raw content in a named container on any StorageBackend.

The container is created (or attached) lazily on first use and memoized for the life of
the store. Values are stored raw or as JSON depending on their type (see
``content_store.services.encoding``); reads decode according to the type the caller asks
for.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Sequence, TypeVar
from uuid import uuid4

from content_store.core.config import Settings, get_settings
from content_store.core.errors import (
    CopyTimeoutError,
    InvalidArgumentError,
    ProvisioningError,
)
from content_store.core.logging_config import log_event
from content_store.core.logging_redaction import redact_uri
from content_store.services.cache_control import CacheControlType
from content_store.services.encoding import decode_value, encode_value
from content_store.services.properties import extract_properties
from content_store.services.storage import get_storage
from content_store.services.storage.base import ContainerHandle, CopyStatus, StorageBackend

logger = logging.getLogger("content_store.store")

T = TypeVar("T")

_RAW_TYPES = (bytes, bytearray, memoryview)


@dataclass
class StoredItem(Generic[T]):
    """A decoded value plus the properties/metadata requested alongside it."""

    data: T
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CopyResult:
    """Terminal state of a copy-from-URI."""

    blob_id: str
    status: CopyStatus
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is CopyStatus.SUCCESS


def _require_id(blob_id: str | None) -> str:
    if blob_id is None or not str(blob_id).strip():
        raise InvalidArgumentError("blob_id is required", {"argument": "blob_id"})
    return str(blob_id)


def _new_id(blob_id: str | None) -> str:
    if blob_id is None or not str(blob_id).strip():
        return str(uuid4())
    return str(blob_id)


class ContentStore:
    """Async content store bound to one container."""

    def __init__(
        self,
        container_name: str,
        backend: StorageBackend | None = None,
        settings: Settings | None = None,
    ) -> None:
        if container_name is None or not container_name.strip():
            raise InvalidArgumentError("container_name is required", {"argument": "container_name"})
        self._name = container_name
        self._settings = settings or get_settings()
        self._owns_backend = backend is None
        self._backend = backend if backend is not None else get_storage(self._settings)
        self._container: ContainerHandle | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    async def resolve(self) -> ContainerHandle:
        """Return the container handle, creating the container on first use.

        Concurrent first calls share one creation attempt. Only success is memoized: after a
        ProvisioningError the next call tries again.
        """
        if self._container is not None:
            return self._container
        async with self._lock:
            if self._container is None:
                self._container = await self._provision()
        return self._container

    async def _provision(self) -> ContainerHandle:
        try:
            handle = await self._backend.create_container_if_absent(self._name)
        except ProvisioningError:
            logger.exception("Failed to provision container %s", self._name)
            raise
        except Exception as e:
            logger.exception("Failed to provision container %s", self._name)
            raise ProvisioningError(
                f"Failed to create or attach container: {self._name}",
                {"container": self._name},
            ) from e
        if handle.created:
            self._log(logging.INFO, "container_created",
                      "No container [%s] found - so one was auto created.", self._name,
                      container=self._name)
        else:
            self._log(logging.INFO, "container_attached",
                      "Using existing container [%s].", self._name,
                      container=self._name)
        return handle

    def _log(self, level: int, event: str, message: str, *args: Any, **fields: Any) -> None:
        log_event(logger, level, event, message, *args, log_json=self._settings.log_json, **fields)

    # -- write path --------------------------------------------------------

    async def put(
        self,
        value: Any,
        blob_id: str | None = None,
        content_type: str | None = None,
        *,
        encoding: str | None = None,
        cache_control: CacheControlType | str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store value and return its blob id (a new UUID when blob_id is blank).

        bytes-like values and binary file objects are written as-is with content_type (None =
        provider default). Any other value is encoded by type: simple values as text/plain,
        the rest as application/json; content_type is ignored for those.
        """
        if value is None:
            raise InvalidArgumentError("value is required", {"argument": "value"})
        encoding = encoding or self._settings.default_encoding
        if isinstance(value, _RAW_TYPES):
            data = bytes(value)
        elif hasattr(value, "read"):
            data = await asyncio.to_thread(value.read)
            if isinstance(data, str):
                data = data.encode(encoding, errors="replace")
        else:
            data, content_type = encode_value(value, encoding)

        if isinstance(cache_control, CacheControlType):
            cache_control = cache_control.to_header()
        blob_id = _new_id(blob_id)
        container = await self.resolve()
        await self._backend.upload_object(
            container,
            blob_id,
            data,
            content_type=content_type or None,
            cache_control=cache_control or None,
            metadata=metadata,
        )
        return blob_id

    async def put_from_uri(
        self,
        source_uri: str,
        blob_id: str | None = None,
        content_type: str | None = None,
        *,
        poll_interval: float | None = None,
        timeout: float | None = None,
    ) -> CopyResult:
        """Copy source_uri into the container and wait until the copy leaves PENDING.

        Status is fetched every poll_interval seconds; cancelling the awaiting task stops the
        wait. timeout None uses copy_timeout_seconds from settings; 0 waits indefinitely.
        The result reports which terminal state was reached; a failed or aborted copy is not
        raised as an error.
        """
        if source_uri is None or not str(source_uri).strip():
            raise InvalidArgumentError("source_uri is required", {"argument": "source_uri"})
        source_uri = str(source_uri)
        interval = self._settings.copy_poll_interval_seconds if poll_interval is None else poll_interval
        if interval <= 0:
            raise InvalidArgumentError("poll_interval must be positive", {"argument": "poll_interval"})
        if timeout is None:
            timeout = self._settings.copy_timeout_seconds
        if timeout is not None and timeout < 0:
            raise InvalidArgumentError("timeout must not be negative", {"argument": "timeout"})

        blob_id = _new_id(blob_id)
        container = await self.resolve()
        await self._backend.start_copy(container, blob_id, source_uri, content_type=content_type or None)
        self._log(logging.INFO, "copy_started", "Copy into [%s/%s] started",
                  self._name, blob_id, container=self._name, blob_id=blob_id, source_uri=source_uri)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout else None
        status = CopyStatus.PENDING
        try:
            while status is CopyStatus.PENDING:
                await asyncio.sleep(interval)
                status = await self._backend.fetch_copy_status(container, blob_id)
                if status is CopyStatus.PENDING and deadline is not None and loop.time() >= deadline:
                    raise CopyTimeoutError(
                        f"Copy into {self._name}/{blob_id} still pending after {timeout}s",
                        {"container": self._name, "blob_id": blob_id, "source_uri": redact_uri(source_uri)},
                    )
        except BaseException:
            # Timed out or cancelled: the copy must not land after the caller gave up on it
            await self._backend.abort_copy(container, blob_id)
            raise

        err = self._backend.copy_error(container, blob_id)
        self._backend.finish_copy(container, blob_id)
        if status is CopyStatus.SUCCESS:
            self._log(logging.INFO, "copy_completed", "Copy into [%s/%s] completed",
                      self._name, blob_id, container=self._name, blob_id=blob_id, status=status.value)
            return CopyResult(blob_id=blob_id, status=status)

        error = f"{type(err).__name__}: {err}" if err is not None else None
        self._log(logging.WARNING, "copy_not_completed", "Copy into [%s/%s] ended %s",
                  self._name, blob_id, status.value,
                  container=self._name, blob_id=blob_id, status=status.value, error=error)
        return CopyResult(blob_id=blob_id, status=status, error=error)

    async def put_batch(
        self,
        items: Iterable[Any],
        batch_size: int | None = None,
        *,
        encoding: str | None = None,
    ) -> list[str]:
        """Store items in consecutive groups of at most batch_size, each group uploaded concurrently.

        Groups run one after another. The first failing upload cancels the rest of its group
        and is raised; later groups never start and no partial result is returned.
        """
        if items is None:
            raise InvalidArgumentError("items is required", {"argument": "items"})
        batch_size = self._settings.batch_size if batch_size is None else batch_size
        if batch_size <= 0:
            raise InvalidArgumentError("batch_size must be greater than 0", {"argument": "batch_size"})
        items = list(items)
        if any(item is None for item in items):
            raise InvalidArgumentError("items must not contain None", {"argument": "items"})

        blob_ids: list[str] = []
        for start in range(0, len(items), batch_size):
            group = items[start : start + batch_size]
            tasks = [asyncio.ensure_future(self.put(item, encoding=encoding)) for item in group]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                for t in tasks:
                    t.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            blob_ids.extend(results)
            logger.debug(
                "Batch group %d stored %d items (%d/%d)",
                start // batch_size, len(results), len(blob_ids), len(items),
            )
        return blob_ids

    # -- read path ---------------------------------------------------------

    async def get_stream(self, blob_id: str) -> bytes | None:
        """Raw content of blob_id; None when it doesn't exist (b"" when it exists but is empty)."""
        blob_id = _require_id(blob_id)
        container = await self.resolve()
        if not await self._backend.object_exists(container, blob_id):
            return None
        try:
            return await self._backend.download_object(container, blob_id)
        except FileNotFoundError:
            # Deleted between the existence check and the download
            return None

    async def get(self, blob_id: str, model: type[T] = str, *, encoding: str | None = None) -> T | None:
        """Decoded value of blob_id as model; None when missing or blank."""
        item = await self.get_item(blob_id, model, encoding=encoding)
        if item is None:
            return None
        return item.data

    async def get_item(
        self,
        blob_id: str,
        model: type[T] = str,
        keys: Sequence[str] | None = None,
        *,
        encoding: str | None = None,
    ) -> StoredItem[T] | None:
        """Decoded value plus the requested properties/metadata keys.

        Each key is matched case-insensitively against the object's known properties
        (e.g. LastModified, ContentMD5), then exactly against its custom metadata.
        """
        data = await self.get_stream(blob_id)
        if not data:
            return None
        text = data.decode(encoding or self._settings.default_encoding, errors="replace")
        if not text.strip():
            return None

        metadata: dict[str, Any] = {}
        if keys:
            container = await self.resolve()
            try:
                props, custom = await self._backend.fetch_properties(container, blob_id)
            except FileNotFoundError:
                return None
            metadata = extract_properties(props, custom, keys)

        return StoredItem(data=decode_value(text, model), metadata=metadata)

    async def delete(self, blob_id: str) -> None:
        """Delete blob_id if present. Missing ids are not an error."""
        blob_id = _require_id(blob_id)
        container = await self.resolve()
        if await self._backend.object_exists(container, blob_id):
            await self._backend.delete_object(container, blob_id)

    # -- lifecycle ---------------------------------------------------------

    async def close(self) -> None:
        if self._owns_backend:
            await self._backend.close()

    async def __aenter__(self) -> "ContentStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


__all__ = ["ContentStore", "CopyResult", "StoredItem"]
