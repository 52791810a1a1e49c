"""Error hierarchy for the content store."""

from __future__ import annotations


class ContentStoreError(Exception):
    """Base exception for all content-store errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidArgumentError(ContentStoreError, ValueError):
    """Raised for a missing/blank required input or an out-of-range parameter."""
    pass


class ProvisioningError(ContentStoreError):
    """Raised when the container cannot be created or attached."""
    pass


class DecodeError(ContentStoreError, ValueError):
    """Raised when stored text cannot be parsed as the requested type.

    Only a bounded preview of the text is kept, never the full payload.
    """

    def __init__(self, preview: str, length: int) -> None:
        super().__init__(
            f"Failed to deserialize the json data [{preview}], length: [{length}].",
            {"preview": preview, "length": str(length)},
        )
        self.preview = preview
        self.length = length


class MetadataLookupError(ContentStoreError, LookupError):
    """Raised when a requested key is neither an object property nor custom metadata."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Properties and metadata don't contain the expected key: [{key}]. "
            "At least one of them should contain that key.",
            {"key": key},
        )
        self.key = key


class CopyTimeoutError(ContentStoreError, TimeoutError):
    """Raised when a copy-from-URI is still pending after the configured timeout."""
    pass
