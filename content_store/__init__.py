"""Async content store over cloud object storage (S3) or local disk."""
from content_store.core.config import Settings, get_settings
from content_store.core.errors import (
    ContentStoreError,
    CopyTimeoutError,
    DecodeError,
    InvalidArgumentError,
    MetadataLookupError,
    ProvisioningError,
)
from content_store.core.logging_config import configure_logging
from content_store.services.cache_control import CacheControlType
from content_store.services.content_store import ContentStore, CopyResult, StoredItem
from content_store.services.properties import ObjectProperties
from content_store.services.storage import CopyStatus, StorageBackend, get_storage

__all__ = [
    "CacheControlType",
    "ContentStore",
    "ContentStoreError",
    "CopyResult",
    "CopyStatus",
    "CopyTimeoutError",
    "DecodeError",
    "InvalidArgumentError",
    "MetadataLookupError",
    "ObjectProperties",
    "ProvisioningError",
    "Settings",
    "StorageBackend",
    "StoredItem",
    "configure_logging",
    "get_settings",
    "get_storage",
]
