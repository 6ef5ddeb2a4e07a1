"""
Read-view rows. Computed on read, never persisted.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ozonator.schemas.catalog import CatalogItemOut


class StockRow(CatalogItemOut):
    warehouse_id: Optional[int] = None
    warehouse_name: Optional[str] = None
    placement_zone: Optional[str] = None


class SalesRow(BaseModel):
    store_identity: Optional[str] = None
    posting_number: str
    related_postings: Optional[str] = None
    delivery_model: Optional[str] = None  # FBO / FBS
    status: Optional[str] = None
    in_process_at: Optional[str] = None
    shipment_date: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_cluster: Optional[str] = None
    warehouse_name: Optional[str] = None

    offer_id: Optional[str] = None
    sku: Optional[str] = None
    product_id: Optional[int] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    barcode: Optional[str] = None
    photo_url: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[str] = None

    source: str = "live"  # live / archive


class SalesPeriod(BaseModel):
    since: datetime
    to: datetime
