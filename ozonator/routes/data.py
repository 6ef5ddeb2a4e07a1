# ozonator/routes/data.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ozonator.dependencies import get_sync_service
from ozonator.schemas.catalog import CatalogItemOut
from ozonator.schemas.sync import RegistryEntryOut, SyncRunOut
from ozonator.schemas.views import SalesPeriod, SalesRow, StockRow
from ozonator.services.sales_view_service import as_utc, default_period
from ozonator.services.sync_service import SyncService

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/products", response_model=List[CatalogItemOut])
async def get_products(
    store: Optional[str] = None,
    service: SyncService = Depends(get_sync_service),
):
    return await service.read_catalog(store)


@router.get("/stocks", response_model=List[StockRow])
async def get_stocks(
    store: Optional[str] = None,
    service: SyncService = Depends(get_sync_service),
):
    return await service.read_stock_view(store)


@router.get("/sales", response_model=List[SalesRow])
async def get_sales(
    store: Optional[str] = None,
    since: Optional[datetime] = Query(None, description="Start of the period (ISO 8601)"),
    to: Optional[datetime] = Query(None, description="End of the period (ISO 8601)"),
    live: bool = True,
    service: SyncService = Depends(get_sync_service),
):
    period = None
    if since or to:
        fallback = default_period()
        period = SalesPeriod(since=as_utc(since or fallback.since), to=as_utc(to or fallback.to))
        if period.since > period.to:
            raise HTTPException(status_code=400, detail="'since' must not be after 'to'")
    return await service.read_sales_view(store, period, live=live)


@router.get("/sync-log", response_model=List[SyncRunOut])
async def get_sync_log(
    store: Optional[str] = None,
    service: SyncService = Depends(get_sync_service),
):
    return await service.list_runs(store)


@router.delete("/sync-log")
async def clear_sync_log(service: SyncService = Depends(get_sync_service)):
    removed = await service.clear_runs()
    return {"ok": True, "removed": removed}


@router.get("/api-registry", response_model=List[RegistryEntryOut])
async def get_api_registry(service: SyncService = Depends(get_sync_service)):
    return await service.list_registry()
