"""Cache-Control header values that can be stamped on stored objects."""
from enum import Enum

from content_store.core.errors import InvalidArgumentError


class CacheControlType(str, Enum):
    NONE = "none"
    NO_STORE = "no-store"
    NO_CACHE = "no-cache"

    def to_header(self) -> str:
        """Header value for this type; NONE maps to an empty string (header not sent)."""
        if self is CacheControlType.NONE:
            return ""
        return self.value

    @classmethod
    def from_header(cls, value: str | None) -> "CacheControlType":
        """Parse a Cache-Control header value (case-insensitive). Unknown directives map to NONE."""
        if value is None or not value.strip():
            raise InvalidArgumentError("cache control value is required", {"argument": "value"})
        v = value.strip().lower()
        if v == cls.NO_STORE.value:
            return cls.NO_STORE
        if v == cls.NO_CACHE.value:
            return cls.NO_CACHE
        return cls.NONE
