# ozonator/models/placement.py
from sqlalchemy import Column, BigInteger, String, DateTime, Index

from ozonator.core.utils import utcnow
from ozonator.database import Base


class PlacementRow(Base):
    """
    Warehouse placement zone of one SKU at one warehouse.

    The per-store set is replaced wholesale on every successful placement
    sync, never merged.
    """
    __tablename__ = "placement_rows"

    store_identity = Column(String, primary_key=True)
    warehouse_id = Column(BigInteger, primary_key=True)
    sku = Column(String, primary_key=True)  # ozon_sku, else seller_sku

    warehouse_name = Column(String, nullable=True)
    ozon_sku = Column(String, nullable=True)
    seller_sku = Column(String, nullable=True)
    placement_zone = Column(String, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_placement_rows_store_ozon_sku", "store_identity", "ozon_sku"),
        Index("idx_placement_rows_store_seller_sku", "store_identity", "seller_sku"),
    )

    def __repr__(self):
        return (f"<PlacementRow(store={self.store_identity}, warehouse={self.warehouse_id}, "
                f"sku={self.sku}, zone={self.placement_zone})>")
