"""Shared pieces for wire-record models."""

from datetime import datetime
from enum import Enum
from typing import Any, Type, TypeVar

E = TypeVar("E", bound=Enum)


class RecordError(ValueError):
    """A wire record is missing required fields or carries unusable values."""


class Exchange(str, Enum):
    BINANCE = "binance"
    DELTA = "delta"


DEFAULT_EXCHANGE = Exchange.BINANCE


def to_jsonable(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if hasattr(value, "__dict__"):
        return to_jsonable(vars(value))
    return str(value)


def parse_enum(enum_cls: Type[E], value: Any, default: E, field_name: str) -> E:
    """Coerce a wire string into ``enum_cls``; absent values use ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise RecordError(f"unknown {field_name} {value!r}") from None


def require(record: dict, key: str) -> Any:
    value = record.get(key)
    if value is None or value == "":
        raise RecordError(f"missing required field {key!r}")
    return value
