"""
Placement Reconciler

Fetches placement zones for every warehouse x SKU chunk and replaces the
per-store placement snapshot. The snapshot is only ever replaced as a whole;
when nothing usable comes back the previous snapshot stays and the caller
gets a warning instead.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete

from ozonator.core.config import get_settings
from ozonator.core.exceptions import OzonAPIError
from ozonator.core.utils import ValidId, chunked, clean_text, parse_external_id, utcnow
from ozonator.database import LocalStore
from ozonator.models import PlacementRow
from ozonator.services.ozon.client import OzonClient

logger = logging.getLogger(__name__)

NO_WAREHOUSES_WARNING = "Ozon returned no warehouses; the previous placement data was kept."
NO_PLACEMENTS_WARNING = "Ozon returned no placement zones for any SKU; the previous placement data was kept."


@dataclass
class PlacementSyncResult:
    row_count: int = 0
    kept: bool = False
    warning: Optional[str] = None


@dataclass(frozen=True)
class ResolvedPlacement:
    warehouse_id: int
    warehouse_name: Optional[str]
    sku: str
    ozon_sku: Optional[str]
    seller_sku: Optional[str]
    placement_zone: Optional[str]

    @property
    def dedup_key(self) -> Tuple[int, str, str, str]:
        return (self.warehouse_id, self.ozon_sku or "", self.seller_sku or "", self.placement_zone or "")


def _zone_name(item: Dict[str, Any]) -> Optional[str]:
    for field in ("placement_zone", "zone_name", "zone"):
        value = item.get(field)
        if isinstance(value, dict):
            value = value.get("name") or value.get("zone_name")
        text = clean_text(value)
        if text:
            return text
    return None


def resolve_placement(
    item: Dict[str, Any],
    warehouse_id: int,
    warehouse_name: Optional[str],
    by_seller_sku: bool,
) -> Optional[ResolvedPlacement]:
    """
    Normalize one placement-zone item. `by_seller_sku` tells which identifier
    space the request was made in, which decides how a bare `sku` is read.
    """
    if not isinstance(item, dict):
        return None

    raw_sku = clean_text(item.get("sku"))
    ozon_sku = clean_text(item.get("ozon_sku"))
    seller_sku = clean_text(item.get("seller_sku")) or clean_text(item.get("offer_id"))

    if raw_sku:
        if by_seller_sku and not seller_sku:
            seller_sku = raw_sku
        elif not by_seller_sku and not ozon_sku:
            ozon_sku = raw_sku

    sku = ozon_sku or seller_sku or raw_sku
    if not sku:
        return None

    return ResolvedPlacement(
        warehouse_id=warehouse_id,
        warehouse_name=warehouse_name,
        sku=sku,
        ozon_sku=ozon_sku,
        seller_sku=seller_sku,
        placement_zone=_zone_name(item),
    )


class PlacementReconciler:

    def __init__(self, client: OzonClient, store: LocalStore, chunk_size: Optional[int] = None):
        self.client = client
        self.store = store
        self.chunk_size = chunk_size or get_settings().PLACEMENT_CHUNK_SIZE

    async def sync(self, store_identity: str, ozon_skus: List[str], seller_skus: List[str]) -> PlacementSyncResult:
        """
        Rebuild the placement snapshot for one store.

        Never raises for remote failures: the error text comes back as the
        warning and the previous snapshot is kept.
        """
        ozon_skus = self._unique(ozon_skus)
        seller_skus = self._unique(seller_skus)

        if not ozon_skus and not seller_skus:
            # No products, so no placements either
            count = await self.replace_snapshot(store_identity, [])
            return PlacementSyncResult(row_count=count)

        try:
            rows = await self._fetch(ozon_skus, seller_skus)
        except OzonAPIError as e:
            logger.warning(f"Placement sync failed, previous snapshot kept: {e.message}")
            return PlacementSyncResult(kept=True, warning=e.message)

        if rows is None:
            logger.warning(NO_WAREHOUSES_WARNING)
            return PlacementSyncResult(kept=True, warning=NO_WAREHOUSES_WARNING)

        if not rows:
            logger.warning(NO_PLACEMENTS_WARNING)
            return PlacementSyncResult(kept=True, warning=NO_PLACEMENTS_WARNING)

        count = await self.replace_snapshot(store_identity, rows)
        logger.info(f"Placement snapshot for store {store_identity} replaced with {count} rows")
        return PlacementSyncResult(row_count=count)

    async def _fetch(self, ozon_skus: List[str], seller_skus: List[str]) -> Optional[List[ResolvedPlacement]]:
        """Deduplicated placement rows, or None when there are no warehouses"""
        warehouses = await self.client.list_warehouses()

        targets: List[Tuple[int, Optional[str]]] = []
        for warehouse in warehouses:
            if not isinstance(warehouse, dict):
                continue
            parsed = parse_external_id(warehouse.get("warehouse_id", warehouse.get("id")))
            if isinstance(parsed, ValidId):
                targets.append((parsed.value, clean_text(warehouse.get("name"))))

        if not targets:
            return None

        rows: List[ResolvedPlacement] = []
        seen = set()

        def accumulate(items, warehouse_id, warehouse_name, by_seller_sku):
            for item in items:
                placement = resolve_placement(item, warehouse_id, warehouse_name, by_seller_sku)
                if placement is None or placement.dedup_key in seen:
                    continue
                seen.add(placement.dedup_key)
                rows.append(placement)

        for warehouse_id, warehouse_name in targets:
            for chunk in chunked(ozon_skus, self.chunk_size):
                items = await self.client.get_placement_zones(warehouse_id, skus=chunk)
                accumulate(items, warehouse_id, warehouse_name, False)
            for chunk in chunked(seller_skus, self.chunk_size):
                items = await self.client.get_placement_zones(warehouse_id, offer_ids=chunk)
                accumulate(items, warehouse_id, warehouse_name, True)

        return rows

    async def replace_snapshot(self, store_identity: str, rows: List[ResolvedPlacement]) -> int:
        """Delete-then-insert in one transaction; rows sharing a key collapse, last wins"""
        by_key: Dict[Tuple[int, str], ResolvedPlacement] = {}
        for row in rows:
            by_key[(row.warehouse_id, row.sku)] = row

        now = utcnow()
        async with self.store.session() as db:
            async with db.begin():
                await db.execute(delete(PlacementRow).where(PlacementRow.store_identity == store_identity))
                db.add_all([
                    PlacementRow(
                        store_identity=store_identity,
                        warehouse_id=row.warehouse_id,
                        warehouse_name=row.warehouse_name,
                        sku=row.sku,
                        ozon_sku=row.ozon_sku,
                        seller_sku=row.seller_sku,
                        placement_zone=row.placement_zone,
                        updated_at=now,
                    )
                    for row in by_key.values()
                ])
        return len(by_key)

    @staticmethod
    def _unique(values: List[Any]) -> List[str]:
        out: List[str] = []
        seen = set()
        for value in values or []:
            text = clean_text(value)
            if text and text not in seen:
                seen.add(text)
                out.append(text)
        return out
