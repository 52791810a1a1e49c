"""Value <-> stored bytes convention.

Simple values (a fixed set of primitive-like types) are stored as their plain text with
``text/plain``; everything else is stored as a JSON document with ``application/json``.
Nothing on the stored object records which convention was used: reads are driven by the
type the caller asks for.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, TypeVar
from uuid import UUID

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from content_store.core.errors import DecodeError, InvalidArgumentError

T = TypeVar("T")

TEXT_CONTENT_TYPE = "text/plain"
JSON_CONTENT_TYPE = "application/json"

SIMPLE_TYPES: tuple[type, ...] = (str, int, float, bool, Decimal, UUID)

# 15 - 3 == 12: the preview plus "..." never exceeds 15 characters, e.g. "some longer ..."
_PREVIEW_THRESHOLD = 15
_PREVIEW_CHARS = 12

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def is_simple_type(tp: Any) -> bool:
    if not isinstance(tp, type):
        return False
    try:
        return issubclass(tp, SIMPLE_TYPES)
    except TypeError:
        # Parametrized generics such as list[int] pass isinstance(..., type) on some versions
        return False


@lru_cache(maxsize=256)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def error_preview(text: str) -> str:
    if len(text) >= _PREVIEW_THRESHOLD:
        return text[:_PREVIEW_CHARS] + "..."
    return text


def encode_value(value: Any, encoding: str = "utf-8") -> tuple[bytes, str]:
    """Return (bytes, content_type) for value. Characters the encoding can't represent become '?'."""
    if value is None:
        raise InvalidArgumentError("value is required", {"argument": "value"})
    if is_simple_type(type(value)):
        text = str(value.value) if isinstance(value, Enum) else str(value)
        content_type = TEXT_CONTENT_TYPE
    else:
        try:
            text = _ANY_ADAPTER.dump_json(value).decode("utf-8")
        except PydanticSerializationError as e:
            raise InvalidArgumentError(
                f"value of type {type(value).__name__} is not JSON serializable",
                {"argument": "value"},
            ) from e
        content_type = JSON_CONTENT_TYPE
    return text.encode(encoding, errors="replace"), content_type


def _parse_bool(text: str) -> bool:
    v = text.strip().lower()
    if v == "true":
        return True
    if v == "false":
        return False
    raise ValueError(f"not a boolean: {text!r}")


def decode_value(text: str, model: type[T]) -> T:
    """Parse stored text as model: directly for simple types, as JSON otherwise."""
    try:
        if is_simple_type(model):
            if issubclass(model, bool):
                return _parse_bool(text)  # type: ignore[return-value]
            return model(text)  # type: ignore[call-arg]
        return _adapter(model).validate_json(text)
    except (ValidationError, ValueError, ArithmeticError) as e:
        raise DecodeError(error_preview(text), len(text)) from e
