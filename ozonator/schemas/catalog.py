"""
Schemas for catalog rows: the enriched record produced by a sync and the
row returned to readers.
"""
from datetime import datetime
from typing import Optional, Dict

from pydantic import BaseModel

from ozonator.core.enums import Visibility
from ozonator.schemas.base import BaseSchema


class EnrichedProduct(BaseModel):
    """One offer after merging the listing entry with info and attributes"""
    offer_id: str
    product_id: Optional[int] = None
    marketplace_sku: Optional[str] = None
    seller_sku: Optional[str] = None
    sku_variants: Optional[Dict[str, str]] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    type_id: Optional[int] = None
    type_name: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None
    visibility: Visibility = Visibility.UNKNOWN
    hidden_reasons: Optional[str] = None
    remote_created_at: Optional[str] = None
    archived: bool = False


class CatalogItemOut(BaseSchema):
    store_identity: str
    offer_id: str
    product_id: Optional[int] = None
    marketplace_sku: Optional[str] = None
    seller_sku: Optional[str] = None
    sku_variants: Optional[Dict[str, str]] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    type_id: Optional[int] = None
    type_name: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None
    visibility: Visibility = Visibility.UNKNOWN
    hidden_reasons: Optional[str] = None
    remote_created_at: Optional[str] = None
    archived: bool = False
    last_synced_at: datetime


class ReconcileResult(BaseModel):
    added_count: int
    final_count: int
    removed_count: int = 0
