"""
Sales view: FBO and FBS postings flattened into one row per line item and
joined with the local catalog.

Postings come from a live call when possible. When the call fails, or the
caller asks for offline data, the most recent archived response of the same
endpoint is used instead.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import iso8601

from ozonator.core.config import get_settings
from ozonator.core.enums import DeliverySchema
from ozonator.core.exceptions import OzonAPIError
from ozonator.core.utils import ValidId, clean_text, parse_external_id
from ozonator.models import CatalogItem
from ozonator.schemas.views import SalesPeriod, SalesRow
from ozonator.services.api_archive_service import RawExchangeArchive
from ozonator.services.catalog_service import CatalogService
from ozonator.services.ozon.client import OzonClient
from ozonator.services.ozon.envelope import items_or_empty

logger = logging.getLogger(__name__)

POSTING_ENDPOINTS: Tuple[Tuple[str, DeliverySchema], ...] = (
    (OzonClient.FBO_POSTINGS_PATH, DeliverySchema.FBO),
    (OzonClient.FBS_POSTINGS_PATH, DeliverySchema.FBS),
)

POSTINGS_PAGE_LIMIT = 1000


def has_more_postings(payload: Any, received: int, limit: int) -> bool:
    """FBS pages carry has_next; FBO pages do not, and a full page means there may be more"""
    if isinstance(payload, dict):
        result = payload.get("result")
        if isinstance(result, dict) and isinstance(result.get("has_next"), bool):
            return result["has_next"]
        if isinstance(payload.get("has_next"), bool):
            return payload["has_next"]
    return received >= limit


def default_period(days: Optional[int] = None, now: Optional[datetime] = None) -> SalesPeriod:
    now = now or datetime.now(timezone.utc)
    return SalesPeriod(since=now - timedelta(days=days or get_settings().SALES_DEFAULT_DAYS), to=now)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_api_datetime(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: Any) -> Optional[datetime]:
    text = clean_text(value)
    if not text:
        return None
    try:
        parsed = iso8601.parse_date(text)
    except iso8601.ParseError:
        return None
    return parsed


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        text = clean_text(value)
        if text:
            return text
    return None


def _related_postings(posting: Dict[str, Any]) -> Optional[str]:
    related = posting.get("related_postings")
    if isinstance(related, dict):
        related = related.get("related_posting_numbers")
    if isinstance(related, list):
        numbers = [clean_text(n) for n in related]
        joined = ", ".join(n for n in numbers if n)
        return joined or None
    return clean_text(related) or clean_text(posting.get("parent_posting_number"))


def flatten_postings(
    postings: Iterable[Any],
    schema: DeliverySchema,
    store_identity: Optional[str],
    source: str,
) -> List[SalesRow]:
    """One row per product line of every posting that has a posting number"""
    rows: List[SalesRow] = []

    for posting in postings or []:
        if not isinstance(posting, dict):
            continue
        posting_number = clean_text(posting.get("posting_number"))
        if not posting_number:
            continue

        analytics = posting.get("analytics_data") if isinstance(posting.get("analytics_data"), dict) else {}
        financial = posting.get("financial_data") if isinstance(posting.get("financial_data"), dict) else {}
        delivery_method = posting.get("delivery_method") if isinstance(posting.get("delivery_method"), dict) else {}

        common = dict(
            store_identity=store_identity,
            posting_number=posting_number,
            related_postings=_related_postings(posting),
            delivery_model=schema.value,
            status=clean_text(posting.get("status")),
            in_process_at=_first_text(posting.get("in_process_at"), posting.get("created_at")),
            shipment_date=_first_text(posting.get("shipment_date")),
            delivery_date=_first_text(
                posting.get("delivering_date"),
                posting.get("delivery_date"),
                analytics.get("delivery_date_end"),
            ),
            delivery_cluster=_first_text(
                financial.get("cluster_to"),
                analytics.get("delivery_cluster"),
                analytics.get("cluster_to"),
            ),
            warehouse_name=_first_text(
                analytics.get("warehouse_name"),
                analytics.get("warehouse"),
                delivery_method.get("warehouse"),
            ),
            source=source,
        )

        for product in posting.get("products") or []:
            if not isinstance(product, dict):
                continue
            quantity = parse_external_id(product.get("quantity"))
            rows.append(SalesRow(
                **common,
                offer_id=clean_text(product.get("offer_id")),
                sku=clean_text(product.get("sku")),
                name=clean_text(product.get("name")),
                quantity=quantity.value if isinstance(quantity, ValidId) else None,
                price=clean_text(product.get("price")),
            ))

    return rows


def _prefer(current: SalesRow, candidate: SalesRow) -> bool:
    """True when `candidate` should replace `current` for the same (posting, sku)"""
    current_date = current.delivery_date or ""
    candidate_date = candidate.delivery_date or ""
    if bool(candidate_date) != bool(current_date):
        return bool(candidate_date)
    return candidate_date > current_date


def dedupe_rows(rows: Iterable[SalesRow]) -> List[SalesRow]:
    chosen: Dict[Tuple[str, str], SalesRow] = {}
    for row in rows:
        key = (row.posting_number, row.sku or "")
        current = chosen.get(key)
        if current is None or _prefer(current, row):
            chosen[key] = row
    return list(chosen.values())


def sort_rows(rows: List[SalesRow]) -> List[SalesRow]:
    """in_process_at newest first (missing last), then posting number desc, then offer id asc"""
    ordered = sorted(rows, key=lambda r: r.offer_id or "")
    ordered.sort(key=lambda r: r.posting_number, reverse=True)

    def processed_key(row: SalesRow):
        at = parse_timestamp(row.in_process_at)
        return (0, -at.timestamp()) if at is not None else (1, 0.0)

    ordered.sort(key=processed_key)
    return ordered


def within_period(row: SalesRow, period: Optional[SalesPeriod]) -> bool:
    if period is None:
        return True
    at = parse_timestamp(row.in_process_at)
    if at is None:
        return True
    return as_utc(period.since) <= at <= as_utc(period.to)


def join_catalog(rows: List[SalesRow], items: List[CatalogItem]) -> List[SalesRow]:
    """Fill product fields from the catalog, matching by Ozon SKU first, then offer id"""
    by_sku: Dict[str, CatalogItem] = {}
    by_offer: Dict[str, CatalogItem] = {}
    for item in items:
        if item.marketplace_sku:
            by_sku.setdefault(item.marketplace_sku, item)
        by_offer.setdefault(item.offer_id, item)

    joined: List[SalesRow] = []
    for row in rows:
        item = (by_sku.get(row.sku) if row.sku else None) or (by_offer.get(row.offer_id) if row.offer_id else None)
        if item is None:
            joined.append(row)
            continue
        joined.append(row.model_copy(update={
            "offer_id": row.offer_id or item.offer_id,
            "product_id": item.product_id,
            "name": row.name or item.name,
            "brand": item.brand,
            "barcode": item.barcode,
            "photo_url": item.photo_url,
        }))
    return joined


class SalesViewService:

    def __init__(
        self,
        catalog: CatalogService,
        archive: RawExchangeArchive,
        page_limit: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        self.catalog = catalog
        self.archive = archive
        self.page_limit = page_limit or POSTINGS_PAGE_LIMIT
        self.max_pages = max_pages or get_settings().MAX_SYNC_PAGES

    async def fetch_live(self, client: OzonClient, endpoint: str, period: SalesPeriod) -> List[Any]:
        """All postings of the period from one endpoint, paged by offset"""
        postings: List[Any] = []
        offset = 0
        for _ in range(self.max_pages):
            payload = await client.list_postings(
                endpoint,
                since=format_api_datetime(period.since),
                to=format_api_datetime(period.to),
                limit=self.page_limit,
                offset=offset,
            )
            page = await client.items_from(payload, endpoint, key="postings")
            postings.extend(page)
            if not page or not has_more_postings(payload, len(page), self.page_limit):
                return postings
            offset += len(page)

        logger.warning(
            f"{endpoint} still reports more postings after {self.max_pages} pages, "
            f"sales view limited to the first {len(postings)}"
        )
        return postings

    async def read(
        self,
        store_identity: Optional[str] = None,
        period: Optional[SalesPeriod] = None,
        client: Optional[OzonClient] = None,
    ) -> List[SalesRow]:
        """
        Sales rows for the period (last SALES_DEFAULT_DAYS days by default).
        Without a client only archived payloads are used.
        """
        period = period or default_period()
        rows: List[SalesRow] = []
        fallback_endpoints: List[str] = []

        for endpoint, schema in POSTING_ENDPOINTS:
            if client is None:
                fallback_endpoints.append(endpoint)
                continue
            try:
                postings = await self.fetch_live(client, endpoint, period)
            except OzonAPIError as e:
                logger.warning(f"Live postings from {endpoint} unavailable, using archived data: {e.message}")
                fallback_endpoints.append(endpoint)
                continue
            rows.extend(flatten_postings(postings, schema, store_identity, "live"))

        if fallback_endpoints:
            cached = await self.archive.latest_by_endpoint(store_identity, fallback_endpoints)
            for endpoint, schema in POSTING_ENDPOINTS:
                if endpoint not in cached:
                    continue
                postings = items_or_empty(cached[endpoint], key="postings", endpoint=endpoint)
                rows.extend(flatten_postings(postings, schema, store_identity, "archive"))

        rows = [row for row in rows if within_period(row, period)]
        rows = dedupe_rows(rows)
        rows = join_catalog(rows, await self.catalog.list_items(store_identity))
        return sort_rows(rows)
