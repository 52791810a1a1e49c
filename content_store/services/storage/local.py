"""Local (dev disk) storage: one directory per container, a file per blob and a JSON sidecar for its properties."""
from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import httpx

from content_store.core.config import Settings, get_settings
from content_store.core.errors import InvalidArgumentError, ProvisioningError
from content_store.services.properties import ObjectProperties
from content_store.services.storage.base import ContainerHandle, StorageBackend
from content_store.services.storage.sources import read_source

_META_DIR = ".meta"


class LocalStorage(StorageBackend):
    """Dev disk storage: containers are directories under local_storage_dir; blocking I/O runs in a worker thread."""

    def __init__(
        self,
        root: str | Path | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        settings = settings or get_settings()
        self._root = Path(root if root is not None else settings.local_storage_dir)
        self._http_timeout = settings.http_timeout_seconds
        # Test hook: httpx transport used when copying from http(s) sources
        self._transport = transport

    def _paths(self, container: ContainerHandle, blob_id: str) -> tuple[Path, Path]:
        base = (self._root / container.name).resolve()
        path = (base / blob_id).resolve()
        if base not in path.parents or path.parts[len(base.parts)] == _META_DIR:
            raise InvalidArgumentError(f"Invalid blob id: {blob_id}", {"argument": "blob_id"})
        meta = base / _META_DIR / (path.relative_to(base).as_posix() + ".json")
        return path, meta

    async def create_container_if_absent(self, name: str) -> ContainerHandle:
        path = self._root / name
        try:
            existed = await asyncio.to_thread(path.is_dir)
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisioningError(
                f"Failed to create local container: {name}",
                {"container": name, "root": str(self._root)},
            ) from e
        return ContainerHandle(name=name, created=not existed)

    async def object_exists(self, container: ContainerHandle, blob_id: str) -> bool:
        path, _ = self._paths(container, blob_id)
        return await asyncio.to_thread(path.is_file)

    async def upload_object(
        self,
        container: ContainerHandle,
        blob_id: str,
        data: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        path, meta = self._paths(container, blob_id)
        digest = hashlib.md5(data).digest()
        sidecar = {
            # Same default S3 applies when no content type is given
            "content_type": content_type or "application/octet-stream",
            "cache_control": cache_control or None,
            "content_md5": base64.b64encode(digest).decode("ascii"),
            "etag": f'"{digest.hex()}"',
            "metadata": dict(metadata or {}),
        }
        await asyncio.to_thread(_write_atomic, path, data)
        await asyncio.to_thread(_write_atomic, meta, json.dumps(sidecar).encode("utf-8"))

    async def download_object(self, container: ContainerHandle, blob_id: str) -> bytes:
        path, _ = self._paths(container, blob_id)
        if not await asyncio.to_thread(path.is_file):
            raise FileNotFoundError(f"Object not found: {container.name}/{blob_id}")
        return await asyncio.to_thread(path.read_bytes)

    async def delete_object(self, container: ContainerHandle, blob_id: str) -> None:
        path, meta = self._paths(container, blob_id)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        await asyncio.to_thread(meta.unlink, missing_ok=True)
        self._copies.forget(container.name, blob_id)

    async def fetch_properties(
        self, container: ContainerHandle, blob_id: str
    ) -> tuple[ObjectProperties, dict[str, str]]:
        path, meta = self._paths(container, blob_id)
        return await asyncio.to_thread(_read_properties, path, meta, f"{container.name}/{blob_id}")

    async def _copy(
        self,
        container: ContainerHandle,
        blob_id: str,
        source_uri: str,
        content_type: str | None,
    ) -> None:
        data, source_type = await read_source(
            source_uri, timeout=self._http_timeout, transport=self._transport
        )
        await self.upload_object(container, blob_id, data, content_type=content_type or source_type)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def _read_properties(path: Path, meta: Path, label: str) -> tuple[ObjectProperties, dict[str, str]]:
    if not path.is_file():
        raise FileNotFoundError(f"Object not found: {label}")
    stat = path.stat()
    sidecar: dict = {}
    if meta.is_file():
        sidecar = json.loads(meta.read_text(encoding="utf-8"))
    props = ObjectProperties(
        content_type=sidecar.get("content_type"),
        content_length=stat.st_size,
        content_md5=sidecar.get("content_md5"),
        cache_control=sidecar.get("cache_control"),
        etag=sidecar.get("etag"),
        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )
    return props, dict(sidecar.get("metadata") or {})
