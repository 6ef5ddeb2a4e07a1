"""
Sync orchestration.

Runs the credential check and the catalog sync, logging each run, and serves
the read operations (catalog, stock view, sales view) to the HTTP routes and
the CLI.

Catalog sync:
    1. page through /v3/product/list
    2. enrich every page and upsert it
    3. delete offers the listing no longer returns
    4. rebuild placements (non-fatal)
    5. resolve the store name if none is cached (non-fatal)
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ozonator.core.config import get_settings
from ozonator.core.enums import SyncRunKind, SyncRunStatus
from ozonator.core.exceptions import OzonAPIError, CredentialsMissingError
from ozonator.database import LocalStore
from ozonator.schemas.catalog import CatalogItemOut
from ozonator.schemas.credentials import Credential, CredentialProvider
from ozonator.schemas.sync import CatalogSyncResult, CredentialCheckResult, RegistryEntryOut, SyncRunOut
from ozonator.schemas.views import SalesPeriod, SalesRow, StockRow
from ozonator.services.api_archive_service import RawExchangeArchive
from ozonator.services.catalog_service import CatalogService
from ozonator.services.ozon.client import OzonClient
from ozonator.services.ozon.enrichment import ProductEnricher
from ozonator.services.ozon.envelope import extract_cursor, extract_total
from ozonator.services.ozon.pagination import Page, paginate
from ozonator.services.ozon.placement import PlacementReconciler, PlacementSyncResult
from ozonator.services.sales_view_service import SalesViewService
from ozonator.services.stock_view_service import StockViewService
from ozonator.services.sync_log_service import SyncLogService

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Credential, RawExchangeArchive], OzonClient]


def default_client_factory(credential: Credential, archive: RawExchangeArchive) -> OzonClient:
    return OzonClient(credential, archive=archive)


def error_detail(error: Exception) -> Dict[str, Any]:
    if isinstance(error, OzonAPIError):
        return error.details
    return {"type": type(error).__name__}


class SyncService:
    """Entry point of the engine for one local store and one credential source."""

    def __init__(
        self,
        store: LocalStore,
        credentials: CredentialProvider,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.store = store
        self.credentials = credentials
        self.client_factory = client_factory or default_client_factory
        self.settings = get_settings()

        self.archive = RawExchangeArchive(store)
        self.catalog = CatalogService(store)
        self.runs = SyncLogService(store)
        self.stock_view = StockViewService(store)
        self.sales_view = SalesViewService(self.catalog, self.archive)

    def _client(self, credential: Credential) -> OzonClient:
        return self.client_factory(credential, self.archive)

    # Runs

    async def run_credential_check(self) -> CredentialCheckResult:
        """Minimal listing call with the configured key pair, then a soft store-name lookup"""
        store_identity = self.credentials.current_identity()
        run_id = await self.runs.start(SyncRunKind.CREDENTIAL_CHECK, store_identity)

        try:
            credential = self.credentials.load()
            client = self._client(credential)
            await client.list_products(last_id="", limit=1)

            name = await client.get_store_name()
            if name:
                self.credentials.update_display_name(name)
            resolved = name or credential.cached_display_name

            await self.runs.finish(
                run_id,
                SyncRunStatus.SUCCESS,
                meta={"store_identity": credential.identity, "store_name": resolved},
                store_identity=credential.identity,
            )
            logger.info(f"Credential check passed for store {credential.identity}")
            return CredentialCheckResult(ok=True, resolved_display_name=resolved)

        except Exception as e:
            message = e.message if isinstance(e, OzonAPIError) else str(e)
            logger.error(f"Credential check failed: {message}")
            await self.runs.finish(
                run_id,
                SyncRunStatus.ERROR,
                error_message=message,
                error_detail=error_detail(e),
                store_identity=store_identity,
            )
            return CredentialCheckResult(ok=False, error=message)

    async def run_catalog_sync(self) -> CatalogSyncResult:
        store_identity = self.credentials.current_identity()
        run_id = await self.runs.start(SyncRunKind.CATALOG_SYNC, store_identity)

        try:
            credential = self.credentials.load()
            client = self._client(credential)
            enricher = ProductEnricher(client)
            reconciliation = await self.catalog.begin_reconciliation(credential.identity)

            async def fetch_page(cursor: str) -> Page:
                payload = await client.list_products(last_id=cursor, limit=self.settings.PRODUCT_PAGE_LIMIT)
                return Page(
                    items=await client.items_from(payload, OzonClient.PRODUCT_LIST_PATH),
                    next_cursor=extract_cursor(payload),
                    total=extract_total(payload),
                )

            async def apply_page(entries: List[Any], page_number: int) -> None:
                products = await enricher.enrich(entries)
                await reconciliation.apply_page(products)

            _, page_count = await paginate(fetch_page, self.settings.MAX_SYNC_PAGES, apply_page)
            reconciled = await reconciliation.finish()

        except Exception as e:
            message = e.message if isinstance(e, OzonAPIError) else str(e)
            logger.error(f"Catalog sync failed: {message}")
            await self.runs.finish(
                run_id,
                SyncRunStatus.ERROR,
                error_message=message,
                error_detail=error_detail(e),
                store_identity=store_identity,
            )
            return CatalogSyncResult(ok=False, error=message)

        placement = await self._sync_placements(client, credential.identity)
        store_name = await self._refresh_store_name(client, credential)

        await self.runs.finish(
            run_id,
            SyncRunStatus.SUCCESS,
            item_count=reconciled.final_count,
            meta={
                "added": reconciled.added_count,
                "removed": reconciled.removed_count,
                "pages": page_count,
                "store_identity": credential.identity,
                "store_name": store_name,
                "placement_row_count": placement.row_count,
                "placement_warning": placement.warning,
                "placement_kept": placement.kept,
            },
            store_identity=credential.identity,
        )

        return CatalogSyncResult(
            ok=True,
            item_count=reconciled.final_count,
            page_count=page_count,
            added_count=reconciled.added_count,
            placement_row_count=placement.row_count,
            placement_warning=placement.warning,
        )

    async def _sync_placements(self, client: OzonClient, store_identity: str) -> PlacementSyncResult:
        try:
            ozon_skus, seller_skus = await self.catalog.sku_lists(store_identity)
            return await PlacementReconciler(client, self.store).sync(store_identity, ozon_skus, seller_skus)
        except Exception as e:
            logger.warning(f"Placement sync failed, previous snapshot kept: {str(e)}")
            return PlacementSyncResult(kept=True, warning=str(e))

    async def _refresh_store_name(self, client: OzonClient, credential: Credential) -> Optional[str]:
        if credential.cached_display_name:
            return credential.cached_display_name
        try:
            name = await client.get_store_name()
        except Exception as e:
            logger.warning(f"Store name lookup failed: {str(e)}")
            return None
        if name:
            self.credentials.update_display_name(name)
        return name

    # Reads

    def _scope(self, store_identity: Optional[str]) -> Optional[str]:
        return store_identity or self.credentials.current_identity()

    async def read_catalog(self, store_identity: Optional[str] = None) -> List[CatalogItemOut]:
        items = await self.catalog.list_items(self._scope(store_identity))
        return [CatalogItemOut.from_orm_model(item) for item in items]

    async def read_stock_view(self, store_identity: Optional[str] = None) -> List[StockRow]:
        return await self.stock_view.read(self._scope(store_identity))

    async def read_sales_view(
        self,
        store_identity: Optional[str] = None,
        period: Optional[SalesPeriod] = None,
        live: bool = True,
    ) -> List[SalesRow]:
        """
        Live postings when `live` and the store is the configured account,
        archived ones otherwise.
        """
        scope = self._scope(store_identity)
        client = None
        if live:
            try:
                credential = self.credentials.load()
            except CredentialsMissingError:
                logger.info("No credentials configured, reading sales from the archive")
            else:
                if scope == credential.identity:
                    client = self._client(credential)
                else:
                    logger.info(f"Store {scope} is not the configured account, reading its sales from the archive")
        return await self.sales_view.read(scope, period, client)

    # Diagnostics

    async def list_runs(self, store_identity: Optional[str] = None) -> List[SyncRunOut]:
        runs = await self.runs.list_runs(self._scope(store_identity))
        return [SyncRunOut.from_orm_model(run) for run in runs]

    async def clear_runs(self) -> int:
        return await self.runs.clear()

    async def list_registry(self) -> List[RegistryEntryOut]:
        entries = await self.archive.list_registry()
        return [RegistryEntryOut.from_orm_model(entry) for entry in entries]
