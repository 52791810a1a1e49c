"""Object properties and the property/metadata lookup used by typed reads."""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Iterable, Mapping

from content_store.core.errors import MetadataLookupError


@dataclass
class ObjectProperties:
    """Provider-side properties of a stored object (the fixed, known set)."""

    content_type: str | None = None
    content_length: int = 0
    content_md5: str | None = None
    content_encoding: str | None = None
    content_language: str | None = None
    content_disposition: str | None = None
    cache_control: str | None = None
    etag: str | None = None
    last_modified: datetime | None = None


def _normalize(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


# "LastModified", "lastmodified", "last_modified" and "last-modified" all resolve to last_modified
_PROPERTY_NAMES = {_normalize(f.name): f.name for f in fields(ObjectProperties)}


def extract_properties(
    properties: ObjectProperties,
    metadata: Mapping[str, str] | None,
    keys: Iterable[str],
) -> dict[str, Any]:
    """Pick each requested key from the known properties (case-insensitive), else from metadata (exact match).

    Raises MetadataLookupError naming the first key found in neither.
    """
    result: dict[str, Any] = {}
    for key in keys:
        attr = _PROPERTY_NAMES.get(_normalize(key))
        if attr is not None:
            result[key] = getattr(properties, attr)
        elif metadata and key in metadata:
            result[key] = metadata[key]
        else:
            raise MetadataLookupError(key)
    return result
