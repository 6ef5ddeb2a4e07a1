"""
Sync Run Log Model

One row per orchestrated run (credential check, catalog sync).
"""

from sqlalchemy import Column, Integer, DateTime, String, JSON, Text

from ozonator.core.enums import SyncRunStatus
from ozonator.core.utils import utcnow
from ozonator.database import Base


class SyncRunLog(Base):
    """
    Created as 'pending' when a run starts and closed exactly once with
    'success' or 'error' when it finishes.
    """
    __tablename__ = "sync_run_log"

    id = Column(Integer, primary_key=True, autoincrement=True)

    kind = Column(String, nullable=False, index=True)  # credential-check, catalog-sync
    status = Column(String, nullable=False, default=SyncRunStatus.PENDING.value)

    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    finished_at = Column(DateTime, nullable=True)

    item_count = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    error_detail = Column(Text, nullable=True)  # JSON text, size-capped

    # Free-form run details (added count, placement outcome, ...)
    meta = Column(JSON, nullable=True)

    store_identity = Column(String, nullable=True, index=True)

    def __repr__(self):
        return f"<SyncRunLog(id={self.id}, kind='{self.kind}', status='{self.status}')>"
