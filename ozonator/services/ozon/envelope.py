"""
Normalization of Ozon response envelopes.

The same logical list arrives in several shapes depending on the endpoint
and API version:

    [...]                         bare_array
    {"result": [...]}             result
    {"result": {"items": [...]}}  result.items
    {"items": [...]}              items
    {"result": {"result": [...]}} result.result

Some endpoints name the array after the entity (e.g. result.postings), which
callers pass as `key`. Anything else is an unknown shape: items is None and
callers fall back to an empty list.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

UNKNOWN_SHAPE = "unknown"


@dataclass(frozen=True)
class Envelope:
    items: Optional[List[Any]]
    shape: str

    @property
    def known(self) -> bool:
        return self.items is not None


def extract_items(payload: Any, key: Optional[str] = None) -> Envelope:
    if isinstance(payload, list):
        return Envelope(payload, "bare_array")

    if not isinstance(payload, dict):
        return Envelope(None, UNKNOWN_SHAPE)

    result = payload.get("result")

    if isinstance(result, list):
        return Envelope(result, "result")

    if isinstance(result, dict):
        if key and isinstance(result.get(key), list):
            return Envelope(result[key], f"result.{key}")
        if isinstance(result.get("items"), list):
            return Envelope(result["items"], "result.items")
        if isinstance(result.get("result"), list):
            return Envelope(result["result"], "result.result")

    if key and isinstance(payload.get(key), list):
        return Envelope(payload[key], key)

    if isinstance(payload.get("items"), list):
        return Envelope(payload["items"], "items")

    return Envelope(None, UNKNOWN_SHAPE)


def items_or_empty(payload: Any, key: Optional[str] = None, endpoint: Optional[str] = None) -> List[Any]:
    """Item list of a payload; unknown shapes are logged and yield []"""
    envelope = extract_items(payload, key)
    if envelope.known:
        return envelope.items

    top_keys = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
    logger.info(f"Unrecognized response shape from {endpoint or 'endpoint'}: {top_keys}")
    return []


def extract_cursor(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    result = payload.get("result")
    if isinstance(result, dict) and result.get("last_id") is not None:
        return str(result.get("last_id") or "")
    return str(payload.get("last_id") or "")


def extract_total(payload: Any) -> Optional[int]:
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    raw = result.get("total") if isinstance(result, dict) else None
    if raw is None:
        raw = payload.get("total")
    if isinstance(raw, bool):
        return None
    try:
        total = int(raw)
    except (TypeError, ValueError):
        return None
    return total if total >= 0 else None
