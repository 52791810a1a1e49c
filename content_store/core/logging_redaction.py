"""Redact sensitive data from structured logs. Never log credentials, connection strings or signed URL tokens."""
import re
from typing import Any
from urllib.parse import urlsplit, urlunsplit

# Keys (case-insensitive) that must be redacted in dicts
REDACT_KEYS = frozenset({
    "password", "token", "secret", "authorization", "access_key",
    "aws_access_key_id", "aws_secret_access_key", "session_token",
    "connection_string", "account_key", "sas", "signature", "credential",
})


def _redact_key(key: str) -> bool:
    k = key.lower()
    return any(r in k for r in REDACT_KEYS)


def redact_for_log(obj: Any) -> Any:
    """Return a copy of obj safe for logging: sensitive keys replaced with '[REDACTED]'."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if _redact_key(str(k)) else redact_for_log(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return type(obj)(redact_for_log(x) for x in obj)
    if isinstance(obj, str):
        if _looks_like_secret(obj):
            return "[REDACTED]"
        return redact_uri(obj)
    return obj


def redact_uri(value: str) -> str:
    """Strip userinfo and the query string from a URI (presigned/SAS URLs carry tokens there)."""
    if "://" not in value:
        return value
    parts = urlsplit(value)
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "[REDACTED]@" + netloc.rsplit("@", 1)[1]
    query = "[REDACTED]" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def _looks_like_secret(s: str) -> bool:
    """Heuristic: connection string with an account key, or a bearer token."""
    if re.search(r"(AccountKey|SharedAccessSignature|SecretAccessKey)=", s, re.IGNORECASE):
        return True
    if s.lower().startswith("bearer "):
        return True
    return False
