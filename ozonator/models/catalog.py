# ozonator/models/catalog.py
"""
CatalogItem model

One row per offer of one seller account. The table is owned by catalog
reconciliation: after a completed sync it holds exactly the offers the
remote listing returned for that store.
"""

from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, Text, JSON, Index

from ozonator.core.enums import Visibility
from ozonator.core.utils import utcnow
from ozonator.database import Base


class CatalogItem(Base):
    __tablename__ = "catalog_items"

    # Composite key: offer ids are only unique inside one seller account
    store_identity = Column(String, primary_key=True)
    offer_id = Column(String, primary_key=True)

    # Remote identifiers
    product_id = Column(BigInteger, nullable=True)
    marketplace_sku = Column(String, nullable=True, index=True)  # Ozon SKU
    seller_sku = Column(String, nullable=True)  # Seller article, defaults to offer_id
    sku_variants = Column(JSON, nullable=True)  # e.g. {"fbo": "...", "fbs": "..."}

    # Enriched attributes
    barcode = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    category_id = Column(BigInteger, nullable=True)
    category_name = Column(String, nullable=True)
    type_id = Column(BigInteger, nullable=True)
    type_name = Column(String, nullable=True)
    name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)

    # Storefront state
    visibility = Column(String, nullable=False, default=Visibility.UNKNOWN.value)
    hidden_reasons = Column(Text, nullable=True)
    remote_created_at = Column(String, nullable=True)  # as reported by the API
    archived = Column(Boolean, nullable=False, default=False)

    last_synced_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_catalog_items_store_seller_sku", "store_identity", "seller_sku"),
    )

    def __repr__(self):
        return f"<CatalogItem(store={self.store_identity}, offer_id={self.offer_id}, sku={self.marketplace_sku})>"
