"""
Utility functions for the application.
"""
import json
import math
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

T = TypeVar('T')


@dataclass(frozen=True)
class ValidId:
    value: int


@dataclass(frozen=True)
class InvalidId:
    raw: Any


ExternalId = Union[ValidId, InvalidId]


def parse_external_id(value: Any) -> ExternalId:
    """
    Coerce an identifier that the remote API may send as a number or a string.

    Accepts positive integers, integral finite floats and digit strings.
    Everything else (booleans, NaN/inf, fractions, junk text) is InvalidId.
    """
    if isinstance(value, bool) or value is None:
        return InvalidId(value)

    if isinstance(value, int):
        return ValidId(value) if value > 0 else InvalidId(value)

    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer() or value <= 0:
            return InvalidId(value)
        return ValidId(int(value))

    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            number = int(text)
            return ValidId(number) if number > 0 else InvalidId(value)
        return InvalidId(value)

    return InvalidId(value)


def valid_ids(values: Iterable[Any]) -> List[int]:
    """Parse, drop invalid and de-duplicate while keeping first-seen order."""
    seen = set()
    out = []
    for value in values:
        parsed = parse_external_id(value)
        if isinstance(parsed, ValidId) and parsed.value not in seen:
            seen.add(parsed.value)
            out.append(parsed.value)
    return out


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string form of a scalar, or None when empty."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def to_text(value: Any) -> str:
    """Human-readable text for any JSON value."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


def safe_json(value: Any, limit: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    try:
        raw = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        raw = json.dumps({"unserializable": True})
    return raw[:limit] if limit else raw


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
