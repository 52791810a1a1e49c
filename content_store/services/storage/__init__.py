"""Storage backend factory: local (dev disk) or S3. S3 backend is loaded only when STORAGE_BACKEND=s3 (no boto3 in local)."""
from content_store.core.config import Settings, get_settings
from content_store.services.storage.base import ContainerHandle, CopyStatus, StorageBackend
from content_store.services.storage.local import LocalStorage

__all__ = ["ContainerHandle", "CopyStatus", "StorageBackend", "LocalStorage", "get_storage"]


def get_storage(settings: Settings | None = None) -> StorageBackend:
    """Return the configured storage backend. Avoids importing boto3 when backend is local."""
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        from content_store.services.storage.s3 import S3Storage
        return S3Storage(settings=settings)
    return LocalStorage(settings=settings)
