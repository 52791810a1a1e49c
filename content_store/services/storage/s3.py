"""S3 storage backend: bucket per container, objects via boto3. Imported only when STORAGE_BACKEND=s3 (avoids boto3 in local mode)."""
from __future__ import annotations

import asyncio
import base64
import json
import re
from urllib.parse import unquote, urlsplit

import httpx

from content_store.core.config import Settings, get_settings
from content_store.core.errors import ProvisioningError
from content_store.services.properties import ObjectProperties
from content_store.services.storage.base import ContainerHandle, StorageBackend
from content_store.services.storage.sources import read_source

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound", "NoSuchBucket")
_MD5_ETAG = re.compile(r'^"?([0-9a-fA-F]{32})"?$')
# S3 lowercases user-metadata names; mixed-case names are recorded here so reads can restore them
_KEY_CASE_META = "content-store-key-case"


def _get_client(settings: Settings):
    import boto3
    kwargs = {"region_name": settings.aws_region}
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return boto3.client("s3", **kwargs)


def _error_code(e: Exception) -> str | None:
    resp = getattr(e, "response", None)
    return resp.get("Error", {}).get("Code") if isinstance(resp, dict) else None


def _md5_from_etag(etag: str | None) -> str | None:
    """Base64 MD5 for single-part uploads, whose ETag is the hex digest. Multipart ETags carry no MD5."""
    if not etag:
        return None
    m = _MD5_ETAG.match(etag)
    if not m:
        return None
    return base64.b64encode(bytes.fromhex(m.group(1))).decode("ascii")


def _encode_metadata(metadata: dict[str, str]) -> dict[str, str]:
    out = {k.lower(): v for k, v in metadata.items()}
    mixed = sorted(k for k in metadata if k != k.lower())
    if mixed:
        out[_KEY_CASE_META] = json.dumps(mixed)
    return out


def _decode_metadata(raw: dict[str, str]) -> dict[str, str]:
    raw = dict(raw)
    try:
        original = json.loads(raw.pop(_KEY_CASE_META, "[]"))
    except ValueError:
        original = []
    names = {k.lower(): k for k in original if isinstance(k, str)}
    return {names.get(k, k): v for k, v in raw.items()}


class S3Storage(StorageBackend):
    """S3 backend: containers are buckets; every boto3 call runs in a worker thread."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or get_settings()
        self._client = None
        self._transport = transport

    def _require_client(self):
        if self._client is None:
            raise ProvisioningError("S3 client not initialised; resolve the container first")
        return self._client

    async def create_container_if_absent(self, name: str) -> ContainerHandle:
        try:
            if self._client is None:
                self._client = await asyncio.to_thread(_get_client, self._settings)
        except Exception as e:
            raise ProvisioningError(
                "Failed to create an S3 client. Check the region, endpoint and credentials in your configuration (.env or environment variables).",
                {"region": self._settings.aws_region},
            ) from e
        client = self._client
        try:
            await asyncio.to_thread(client.head_bucket, Bucket=name)
            return ContainerHandle(name=name, created=False)
        except Exception as e:
            if _error_code(e) not in _NOT_FOUND_CODES:
                raise ProvisioningError(f"Failed to access bucket: {name}", {"container": name}) from e
        params: dict = {"Bucket": name}
        if self._settings.aws_region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self._settings.aws_region}
        try:
            await asyncio.to_thread(client.create_bucket, **params)
        except Exception as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                # Lost a creation race with another client of the same account
                return ContainerHandle(name=name, created=False)
            raise ProvisioningError(f"Failed to create bucket: {name}", {"container": name}) from e
        return ContainerHandle(name=name, created=True)

    async def _head(self, container: ContainerHandle, blob_id: str) -> dict | None:
        client = self._require_client()
        try:
            return await asyncio.to_thread(client.head_object, Bucket=container.name, Key=blob_id)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise

    async def object_exists(self, container: ContainerHandle, blob_id: str) -> bool:
        return await self._head(container, blob_id) is not None

    async def upload_object(
        self,
        container: ContainerHandle,
        blob_id: str,
        data: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        client = self._require_client()
        params = {"Bucket": container.name, "Key": blob_id, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        if cache_control:
            params["CacheControl"] = cache_control
        if metadata:
            params["Metadata"] = _encode_metadata(metadata)
        await asyncio.to_thread(client.put_object, **params)

    async def download_object(self, container: ContainerHandle, blob_id: str) -> bytes:
        client = self._require_client()
        try:
            resp = await asyncio.to_thread(client.get_object, Bucket=container.name, Key=blob_id)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise FileNotFoundError(f"Object not found: {container.name}/{blob_id}") from e
            raise
        body = resp["Body"]
        try:
            return await asyncio.to_thread(body.read)
        finally:
            body.close()

    async def delete_object(self, container: ContainerHandle, blob_id: str) -> None:
        client = self._require_client()
        await asyncio.to_thread(client.delete_object, Bucket=container.name, Key=blob_id)
        self._copies.forget(container.name, blob_id)

    async def fetch_properties(
        self, container: ContainerHandle, blob_id: str
    ) -> tuple[ObjectProperties, dict[str, str]]:
        resp = await self._head(container, blob_id)
        if resp is None:
            raise FileNotFoundError(f"Object not found: {container.name}/{blob_id}")
        etag = resp.get("ETag")
        props = ObjectProperties(
            content_type=resp.get("ContentType"),
            content_length=resp.get("ContentLength") or 0,
            content_md5=_md5_from_etag(etag),
            content_encoding=resp.get("ContentEncoding"),
            content_language=resp.get("ContentLanguage"),
            content_disposition=resp.get("ContentDisposition"),
            cache_control=resp.get("CacheControl"),
            etag=etag,
            last_modified=resp.get("LastModified"),
        )
        return props, _decode_metadata(resp.get("Metadata") or {})

    async def _copy(
        self,
        container: ContainerHandle,
        blob_id: str,
        source_uri: str,
        content_type: str | None,
    ) -> None:
        parts = urlsplit(source_uri)
        if parts.scheme == "s3":
            # Bucket-to-bucket: S3 copies server-side
            client = self._require_client()
            params = {
                "Bucket": container.name,
                "Key": blob_id,
                "CopySource": {"Bucket": parts.netloc, "Key": unquote(parts.path.lstrip("/"))},
            }
            if content_type:
                params["ContentType"] = content_type
                params["MetadataDirective"] = "REPLACE"
            await asyncio.to_thread(client.copy_object, **params)
            return
        data, source_type = await read_source(
            source_uri, timeout=self._settings.http_timeout_seconds, transport=self._transport
        )
        await self.upload_object(container, blob_id, data, content_type=content_type or source_type)
