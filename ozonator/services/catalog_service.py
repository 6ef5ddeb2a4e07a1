"""
Catalog Reconciliation Service

Keeps catalog_items for one store identical to the offers returned by the
latest full listing: every fetched offer is upserted, every stored offer the
listing did not return is deleted.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert

from ozonator.core.utils import chunked, utcnow
from ozonator.database import LocalStore
from ozonator.models import CatalogItem
from ozonator.schemas.catalog import EnrichedProduct, ReconcileResult

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 200
DELETE_BATCH_SIZE = 500

MUTABLE_FIELDS = (
    "product_id",
    "marketplace_sku",
    "seller_sku",
    "sku_variants",
    "barcode",
    "brand",
    "category_id",
    "category_name",
    "type_id",
    "type_name",
    "name",
    "photo_url",
    "visibility",
    "hidden_reasons",
    "remote_created_at",
    "archived",
    "last_synced_at",
)


class CatalogReconciliation:
    """
    One reconciliation pass. Pages are applied as they arrive; `finish()`
    deletes whatever the pass did not see.
    """

    def __init__(self, service: "CatalogService", store_identity: str, existing: Set[str]):
        self.service = service
        self.store_identity = store_identity
        self.existing = set(existing)
        self.seen: Set[str] = set()
        self.added = 0

    async def apply_page(self, products: Iterable[EnrichedProduct]) -> int:
        products = list(products)
        for product in products:
            self.seen.add(product.offer_id)
            if product.offer_id not in self.existing:
                self.existing.add(product.offer_id)
                self.added += 1
        return await self.service.upsert_page(self.store_identity, products)

    async def finish(self) -> ReconcileResult:
        removed = await self.service.delete_missing(self.store_identity, self.seen)
        final_count = await self.service.count(self.store_identity)
        logger.info(
            f"Catalog for store {self.store_identity} reconciled: "
            f"{self.added} added, {removed} removed, {final_count} total"
        )
        return ReconcileResult(added_count=self.added, final_count=final_count, removed_count=removed)


class CatalogService:
    """Service for reading and reconciling the local catalog."""

    def __init__(self, store: LocalStore):
        self.store = store

    async def begin_reconciliation(self, store_identity: str) -> CatalogReconciliation:
        existing = await self.offer_ids(store_identity)
        return CatalogReconciliation(self, store_identity, existing)

    async def reconcile(self, store_identity: str, products: Iterable[EnrichedProduct]) -> ReconcileResult:
        """Upsert `products` and delete every other offer of the store"""
        reconciliation = await self.begin_reconciliation(store_identity)
        await reconciliation.apply_page(products)
        return await reconciliation.finish()

    async def offer_ids(self, store_identity: str) -> Set[str]:
        async with self.store.session() as db:
            result = await db.execute(
                select(CatalogItem.offer_id).where(CatalogItem.store_identity == store_identity)
            )
            return set(result.scalars())

    async def upsert_page(self, store_identity: str, products: Iterable[EnrichedProduct]) -> int:
        """
        Insert or overwrite one page of products in a single transaction.
        Duplicate offer ids inside the page collapse, last wins.
        """
        now = utcnow()
        rows: Dict[str, dict] = {}
        for product in products:
            row = product.model_dump()
            row["visibility"] = product.visibility.value
            row["store_identity"] = store_identity
            row["last_synced_at"] = now
            rows[product.offer_id] = row

        if not rows:
            return 0

        async with self.store.session() as db:
            async with db.begin():
                for batch in chunked(list(rows.values()), UPSERT_BATCH_SIZE):
                    stmt = insert(CatalogItem).values(batch)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["store_identity", "offer_id"],
                        set_={field: getattr(stmt.excluded, field) for field in MUTABLE_FIELDS},
                    )
                    await db.execute(stmt)

        logger.debug(f"Upserted {len(rows)} catalog items for store {store_identity}")
        return len(rows)

    async def delete_missing(self, store_identity: str, keep_offer_ids: Iterable[str]) -> int:
        """Delete offers of the store that are not in `keep_offer_ids` (all of them when it is empty)"""
        keep = set(keep_offer_ids)
        stale = sorted(await self.offer_ids(store_identity) - keep)
        if not stale:
            return 0

        async with self.store.session() as db:
            async with db.begin():
                for batch in chunked(stale, DELETE_BATCH_SIZE):
                    await db.execute(
                        delete(CatalogItem)
                        .where(CatalogItem.store_identity == store_identity)
                        .where(CatalogItem.offer_id.in_(batch))
                    )

        logger.info(f"Removed {len(stale)} stale catalog items for store {store_identity}")
        return len(stale)

    async def count(self, store_identity: str) -> int:
        async with self.store.session() as db:
            result = await db.execute(
                select(func.count()).select_from(CatalogItem).where(CatalogItem.store_identity == store_identity)
            )
            return result.scalar_one()

    async def list_items(self, store_identity: Optional[str] = None) -> List[CatalogItem]:
        """Catalog rows of one store (or every store), ordered by offer id ignoring case"""
        async with self.store.session() as db:
            stmt = select(CatalogItem).order_by(func.lower(CatalogItem.offer_id), CatalogItem.offer_id)
            if store_identity:
                stmt = stmt.where(CatalogItem.store_identity == store_identity)
            result = await db.execute(stmt)
            return list(result.scalars())

    async def sku_lists(self, store_identity: str) -> Tuple[List[str], List[str]]:
        """Distinct (ozon SKUs, seller SKUs) of the store, for placement lookups"""
        items = await self.list_items(store_identity)
        ozon_skus = list(dict.fromkeys(i.marketplace_sku for i in items if i.marketplace_sku))
        seller_skus = list(dict.fromkeys(i.seller_sku or i.offer_id for i in items if i.seller_sku or i.offer_id))
        return ozon_skus, seller_skus
