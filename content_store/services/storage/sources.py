"""Read copy sources that the provider can't copy server-side: http(s) URLs and local files."""
from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import unquote, urlsplit

import httpx


def is_http_uri(source_uri: str) -> bool:
    return urlsplit(source_uri).scheme.lower() in ("http", "https")


async def fetch_http(
    source_uri: str,
    timeout: float = 60.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bytes, str | None]:
    """GET source_uri. Returns (body, content type header). Non-2xx raises httpx.HTTPStatusError."""
    async with httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
    ) as client:
        r = await client.get(source_uri)
        r.raise_for_status()
        return r.content, r.headers.get("content-type")


async def read_source(
    source_uri: str,
    timeout: float = 60.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bytes, str | None]:
    """Read an http(s) URL, a file:// URL or a bare local path."""
    if is_http_uri(source_uri):
        return await fetch_http(source_uri, timeout=timeout, transport=transport)
    parts = urlsplit(source_uri)
    if parts.scheme == "file":
        path = Path(unquote(parts.path))
    elif parts.scheme and len(parts.scheme) > 1:
        raise ValueError(f"Unsupported copy source scheme: {parts.scheme}")
    else:
        path = Path(source_uri)
    if not path.is_file():
        raise FileNotFoundError(f"Copy source not found: {path}")
    data = await asyncio.to_thread(path.read_bytes)
    return data, None
