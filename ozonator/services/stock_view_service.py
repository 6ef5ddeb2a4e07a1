"""
Stock view: catalog items joined with their warehouse placements.

A product without placements gives one row with empty warehouse fields.
A product whose placements span several zones gives one row per zone;
placements that all share one zone collapse into a single row.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select

from ozonator.core.utils import clean_text
from ozonator.database import LocalStore
from ozonator.models import CatalogItem, PlacementRow
from ozonator.schemas.views import StockRow

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")

PlacementIndex = Dict[Tuple[str, str], List[PlacementRow]]


def placement_sku_spaces(row: PlacementRow) -> Tuple[Optional[str], Optional[str]]:
    """
    (ozon SKU, seller SKU) of a placement row. Rows written before the two
    columns existed only carry `sku`: all digits means an ozon SKU, anything
    else a seller SKU.
    """
    legacy = clean_text(row.sku)
    ozon_sku = clean_text(row.ozon_sku) or (legacy if legacy and _DIGITS.match(legacy) else None)
    seller_sku = clean_text(row.seller_sku) or (legacy if legacy and legacy != ozon_sku else None)
    return ozon_sku, seller_sku


def index_placements(rows: List[PlacementRow]) -> Tuple[PlacementIndex, PlacementIndex]:
    by_ozon: PlacementIndex = {}
    by_seller: PlacementIndex = {}
    for row in rows:
        store_key = row.store_identity or ""
        ozon_sku, seller_sku = placement_sku_spaces(row)
        if ozon_sku:
            by_ozon.setdefault((store_key, ozon_sku), []).append(row)
        if seller_sku:
            by_seller.setdefault((store_key, seller_sku), []).append(row)
    return by_ozon, by_seller


def match_placements(item: CatalogItem, by_ozon: PlacementIndex, by_seller: PlacementIndex) -> List[PlacementRow]:
    """Ozon SKU matches first, then seller SKU matches, without repeats"""
    store_key = item.store_identity or ""
    ozon_sku = clean_text(item.marketplace_sku)
    seller_sku = clean_text(item.offer_id)

    matched: List[PlacementRow] = []
    seen = set()

    candidates: List[PlacementRow] = []
    if ozon_sku:
        candidates.extend(by_ozon.get((store_key, ozon_sku), []))
    if seller_sku:
        candidates.extend(by_seller.get((store_key, seller_sku), []))

    for row in candidates:
        key = (
            row.store_identity or "",
            row.warehouse_id,
            row.ozon_sku or row.sku or "",
            row.seller_sku or "",
            row.placement_zone or "",
        )
        if key in seen:
            continue
        seen.add(key)
        matched.append(row)
    return matched


def representative_placements(placements: List[PlacementRow]) -> List[PlacementRow]:
    """First placement of each zone bucket, or just the first one when there is a single zone"""
    buckets: Dict[str, List[PlacementRow]] = {}
    for placement in placements:
        buckets.setdefault((placement.placement_zone or "").strip(), []).append(placement)
    if len(buckets) <= 1:
        return placements[:1]
    return [bucket[0] for bucket in buckets.values()]


def compose_stock_rows(items: List[CatalogItem], placements: List[PlacementRow]) -> List[StockRow]:
    by_ozon, by_seller = index_placements(placements)
    rows: List[StockRow] = []

    for item in items:
        base = StockRow.model_validate(item, from_attributes=True)
        matched = match_placements(item, by_ozon, by_seller)

        if not matched:
            rows.append(base)
            continue

        for placement in representative_placements(matched):
            rows.append(base.model_copy(update={
                "warehouse_id": placement.warehouse_id,
                "warehouse_name": placement.warehouse_name,
                "placement_zone": placement.placement_zone,
            }))

    return rows


class StockViewService:

    def __init__(self, store: LocalStore):
        self.store = store

    async def read(self, store_identity: Optional[str] = None) -> List[StockRow]:
        async with self.store.session() as db:
            items_stmt = select(CatalogItem)
            placements_stmt = select(PlacementRow)
            if store_identity:
                items_stmt = items_stmt.where(CatalogItem.store_identity == store_identity)
                placements_stmt = placements_stmt.where(PlacementRow.store_identity == store_identity)

            items_stmt = items_stmt.order_by(
                CatalogItem.store_identity, func.lower(CatalogItem.offer_id), CatalogItem.offer_id
            )
            placements_stmt = placements_stmt.order_by(
                PlacementRow.store_identity,
                func.lower(PlacementRow.sku),
                func.lower(func.coalesce(PlacementRow.warehouse_name, "")),
                PlacementRow.warehouse_id,
            )

            items = list((await db.execute(items_stmt)).scalars())
            placements = list((await db.execute(placements_stmt)).scalars())

        rows = compose_stock_rows(items, placements)
        logger.debug(f"Stock view: {len(items)} products, {len(placements)} placements, {len(rows)} rows")
        return rows
