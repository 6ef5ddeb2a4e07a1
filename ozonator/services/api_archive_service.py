"""
Raw Exchange Archive

Persists every request/response pair sent to the Ozon API and accumulates
schema knowledge per endpoint. The most recent successful payloads double
as an offline data source for the read views.
"""

import hashlib
import json
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select

from ozonator.core.config import get_settings
from ozonator.core.utils import utcnow
from ozonator.database import LocalStore
from ozonator.models import EndpointRegistryEntry, RawExchangeRecord

logger = logging.getLogger(__name__)

MAX_WALK_DEPTH = 6
MAX_KEY_CANDIDATES = 16
MAX_OBSERVED_PATHS = 24
MAX_REGISTRY_VALUES = 32
PATH_ARRAY_FANOUT = 20
KEY_ARRAY_FANOUT = 50
FALLBACK_SCAN_DEPTH = 10

KEY_PRIORITY = {
    "offer_id": 1000,
    "product_id": 990,
    "sku": 980,
    "warehouse_id": 970,
    "id": 960,
}

_VERSION_SEGMENT = re.compile(r"^v\d+$", re.IGNORECASE)


@dataclass
class ApiExchange:
    """One remote call as seen by the client"""
    method: str
    endpoint: str
    store_identity: Optional[str] = None
    request_body: Any = None
    response_body: Any = None
    http_status: Optional[int] = None
    success: bool = True
    error_message: Optional[str] = None
    fetched_at: datetime = field(default_factory=utcnow)


def make_registry_key(method: str, endpoint: str) -> str:
    return f"{str(method or '').upper()} {str(endpoint or '').strip()}".strip()


def infer_entity_hint(endpoint: str) -> Optional[str]:
    parts = [p.strip() for p in str(endpoint or "").split("/") if p.strip()]
    parts = [p for p in parts if not _VERSION_SEGMENT.match(p)]
    if not parts:
        return None
    return "_".join(parts[-2:])


def truncate_json(value: Any, limit: int) -> Tuple[Optional[str], bool]:
    """Serialize and cap to `limit` characters; returns (text, truncated)."""
    if value is None:
        return None, False
    try:
        raw = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        raw = json.dumps({"unserializable": True})
    if len(raw) <= limit:
        return raw, False
    return raw[:limit], True


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def collect_observed_array_paths(root: Any) -> List[str]:
    """
    Breadth-first walk collecting JSON paths of arrays that hold objects,
    e.g. "$.result.items". Depth and per-array fan-out are capped.
    """
    found: List[str] = []
    queue = deque([(root, "$", 0)])
    seen = set()

    while queue:
        value, path, depth = queue.popleft()
        if value is None or depth > MAX_WALK_DEPTH:
            continue
        if not isinstance(value, (dict, list)):
            continue
        if id(value) in seen:
            continue
        seen.add(id(value))

        if isinstance(value, list):
            if any(isinstance(item, dict) for item in value) and path not in found:
                found.append(path)
            for item in value[:PATH_ARRAY_FANOUT]:
                queue.append((item, f"{path}[]", depth + 1))
            continue

        for key, child in value.items():
            queue.append((child, f"{path}.{key}", depth + 1))

    return found[:MAX_OBSERVED_PATHS]


def _looks_like_identifier(key: str) -> bool:
    low = key.lower()
    return low.endswith("id") or low in ("sku", "offer_id", "warehouse_id")


def infer_key_candidates(root: Any) -> List[str]:
    """
    Rank identifier-like scalar field names by a fixed priority table plus
    how often they occur in the payload.
    """
    counters: Dict[str, int] = {}
    queue = deque([(root, 0)])
    seen = set()

    while queue:
        value, depth = queue.popleft()
        if value is None or depth > MAX_WALK_DEPTH:
            continue
        if not isinstance(value, (dict, list)):
            continue
        if id(value) in seen:
            continue
        seen.add(id(value))

        if isinstance(value, list):
            for item in value[:KEY_ARRAY_FANOUT]:
                queue.append((item, depth + 1))
            continue

        for key, child in value.items():
            key = str(key)
            if child is None or isinstance(child, (str, int, float, bool)):
                counters[key] = counters.get(key, 0) + 1
            elif isinstance(child, (dict, list)):
                queue.append((child, depth + 1))

    ranked = [k for k in counters if _looks_like_identifier(k)]
    ranked.sort(key=lambda k: (-(KEY_PRIORITY.get(k.lower(), 0) + counters[k]), k.lower()))
    return ranked[:MAX_KEY_CANDIDATES]


def merge_capped(existing: Optional[Iterable[Any]], incoming: Iterable[Any], cap: int = MAX_REGISTRY_VALUES) -> List[str]:
    """Ordered set union, existing values first, capped at `cap`."""
    merged: List[str] = []
    for value in list(existing or []) + list(incoming):
        text = str(value if value is not None else "").strip()
        if text and text not in merged:
            merged.append(text)
        if len(merged) >= cap:
            break
    return merged


class RawExchangeArchive:
    """Append-only log of remote exchanges plus the endpoint registry"""

    def __init__(self, store: LocalStore, max_body_chars: Optional[int] = None):
        self.store = store
        self.max_body_chars = max_body_chars or get_settings().ARCHIVE_MAX_BODY_CHARS

    async def record(self, exchange: ApiExchange) -> None:
        """
        Insert one exchange and merge what it teaches about the endpoint
        into the registry, in a single transaction.
        """
        method = str(exchange.method or "").upper().strip() or "GET"
        endpoint = str(exchange.endpoint or "").strip()
        registry_key = make_registry_key(method, endpoint)
        entity_hint = infer_entity_hint(endpoint)
        now = exchange.fetched_at or utcnow()

        request_text, request_truncated = truncate_json(exchange.request_body, self.max_body_chars)
        response_text, response_truncated = truncate_json(exchange.response_body, self.max_body_chars)

        key_candidates = infer_key_candidates(exchange.response_body)
        observed_paths = collect_observed_array_paths(exchange.response_body)

        async with self.store.session() as db:
            async with db.begin():
                entry = await db.get(EndpointRegistryEntry, registry_key)
                if entry is None:
                    entry = EndpointRegistryEntry(
                        registry_key=registry_key,
                        method=method,
                        endpoint=endpoint,
                        entity_hint=entity_hint,
                        key_candidates=key_candidates[:MAX_REGISTRY_VALUES],
                        observed_paths=observed_paths[:MAX_REGISTRY_VALUES],
                        envelope_shapes=[],
                        sample_count=1,
                        first_seen_at=now,
                        last_seen_at=now,
                    )
                    db.add(entry)
                else:
                    entry.entity_hint = entry.entity_hint or entity_hint
                    entry.key_candidates = merge_capped(entry.key_candidates, key_candidates)
                    entry.observed_paths = merge_capped(entry.observed_paths, observed_paths)
                    entry.sample_count = (entry.sample_count or 0) + 1
                    entry.last_seen_at = now

                # Flush so the registry row exists before the FK insert
                await db.flush()

                db.add(RawExchangeRecord(
                    store_identity=exchange.store_identity,
                    method=method,
                    endpoint=endpoint,
                    registry_key=registry_key,
                    entity_hint=entity_hint,
                    request_body=request_text,
                    request_truncated=request_truncated,
                    response_body=response_text,
                    response_truncated=response_truncated,
                    response_sha256=sha256_hex(response_text or ""),
                    http_status=exchange.http_status,
                    success=bool(exchange.success),
                    error_message=exchange.error_message,
                    fetched_at=now,
                ))

        logger.debug(f"Archived {registry_key} (status={exchange.http_status}, success={exchange.success})")

    async def note_envelope_shape(self, method: str, endpoint: str, shape: str) -> None:
        """Merge the envelope shape a caller found in a response into the endpoint's registry entry"""
        registry_key = make_registry_key(method, endpoint)
        async with self.store.session() as db:
            async with db.begin():
                entry = await db.get(EndpointRegistryEntry, registry_key)
                if entry is None:
                    logger.debug(f"No registry entry for {registry_key}, shape '{shape}' not recorded")
                    return
                if shape not in (entry.envelope_shapes or []):
                    entry.envelope_shapes = merge_capped(entry.envelope_shapes, [shape])

    async def latest_by_endpoint(self, store_identity: Optional[str], endpoints: Sequence[str]) -> Dict[str, Any]:
        """
        Most recent successful payload per endpoint for this store, falling
        back to the most recent payload of any store. Endpoints without a
        usable payload are left out of the result.
        """
        out: Dict[str, Any] = {}
        async with self.store.session() as db:
            for endpoint in endpoints:
                payload = None
                if store_identity:
                    payload = await self._latest_payload(db, endpoint, store_identity)
                if payload is None:
                    payload = await self._latest_payload(db, endpoint, None)
                if payload is not None:
                    out[endpoint] = payload
        return out

    async def _latest_payload(self, db, endpoint: str, store_identity: Optional[str]) -> Any:
        stmt = (
            select(RawExchangeRecord)
            .where(RawExchangeRecord.endpoint == endpoint)
            .where(RawExchangeRecord.success.is_(True))
            .where(RawExchangeRecord.response_body.is_not(None))
            .order_by(RawExchangeRecord.fetched_at.desc(), RawExchangeRecord.id.desc())
            .limit(FALLBACK_SCAN_DEPTH)
        )
        if store_identity:
            stmt = stmt.where(RawExchangeRecord.store_identity == store_identity)

        result = await db.execute(stmt)
        for record in result.scalars():
            # Truncated bodies are not valid JSON any more; try the next one
            if record.response_truncated:
                continue
            try:
                return json.loads(record.response_body)
            except (TypeError, ValueError):
                logger.warning(f"Archived response {record.id} for {endpoint} is not valid JSON, skipping")
        return None

    async def list_registry(self) -> List[EndpointRegistryEntry]:
        async with self.store.session() as db:
            result = await db.execute(
                select(EndpointRegistryEntry).order_by(EndpointRegistryEntry.registry_key)
            )
            return list(result.scalars())

    async def get_registry_entry(self, method: str, endpoint: str) -> Optional[EndpointRegistryEntry]:
        async with self.store.session() as db:
            return await db.get(EndpointRegistryEntry, make_registry_key(method, endpoint))

    async def list_exchanges(self, endpoint: Optional[str] = None, limit: int = 100) -> List[RawExchangeRecord]:
        async with self.store.session() as db:
            stmt = select(RawExchangeRecord).order_by(RawExchangeRecord.id.desc()).limit(limit)
            if endpoint:
                stmt = stmt.where(RawExchangeRecord.endpoint == endpoint)
            result = await db.execute(stmt)
            return list(result.scalars())
