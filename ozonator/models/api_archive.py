# ozonator/models/api_archive.py
"""
Raw exchange archive tables.

api_raw_exchanges is append-only: one row per remote call, success or
failure. api_endpoint_registry accumulates schema knowledge per
(method, endpoint) and is merged on every insert.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, Index

from ozonator.core.utils import utcnow
from ozonator.database import Base


class EndpointRegistryEntry(Base):
    __tablename__ = "api_endpoint_registry"

    registry_key = Column(String, primary_key=True)  # "POST /v3/product/list"
    method = Column(String, nullable=False)
    endpoint = Column(String, nullable=False)
    entity_hint = Column(String, nullable=True)

    key_candidates = Column(JSON, nullable=False, default=list)
    observed_paths = Column(JSON, nullable=False, default=list)
    envelope_shapes = Column(JSON, nullable=False, default=list)  # e.g. "result.items", "unknown"

    sample_count = Column(Integer, nullable=False, default=0)
    first_seen_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<EndpointRegistryEntry(key='{self.registry_key}', samples={self.sample_count})>"


class RawExchangeRecord(Base):
    __tablename__ = "api_raw_exchanges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_identity = Column(String, nullable=True)

    method = Column(String, nullable=False)
    endpoint = Column(String, nullable=False)
    registry_key = Column(String, ForeignKey("api_endpoint_registry.registry_key"), nullable=False)
    entity_hint = Column(String, nullable=True)

    request_body = Column(Text, nullable=True)
    request_truncated = Column(Boolean, nullable=False, default=False)
    response_body = Column(Text, nullable=True)
    response_truncated = Column(Boolean, nullable=False, default=False)
    response_sha256 = Column(String, nullable=True)

    http_status = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)

    fetched_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_api_raw_exchanges_store_time", "store_identity", "fetched_at"),
        Index("idx_api_raw_exchanges_endpoint_time", "endpoint", "fetched_at"),
        Index("idx_api_raw_exchanges_registry_time", "registry_key", "fetched_at"),
    )

    def __repr__(self):
        return (f"<RawExchangeRecord(id={self.id}, key='{self.registry_key}', "
                f"status={self.http_status}, success={self.success})>")
