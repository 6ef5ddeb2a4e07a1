"""
Sync Run Log Service

Opens a run as 'pending' and closes it once with the outcome. Closing a run
also prunes runs older than the retention window.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, or_, select

from ozonator.core.config import get_settings
from ozonator.core.enums import SyncRunKind, SyncRunStatus
from ozonator.core.utils import safe_json, utcnow
from ozonator.database import LocalStore
from ozonator.models import SyncRunLog

logger = logging.getLogger(__name__)

MAX_ERROR_DETAIL_CHARS = 20000


class SyncLogService:

    def __init__(self, store: LocalStore, retention_days: Optional[int] = None):
        self.store = store
        self.retention_days = retention_days or get_settings().LOG_RETENTION_DAYS

    async def start(self, kind: SyncRunKind, store_identity: Optional[str] = None) -> int:
        async with self.store.session() as db:
            async with db.begin():
                run = SyncRunLog(
                    kind=kind.value if isinstance(kind, SyncRunKind) else str(kind),
                    status=SyncRunStatus.PENDING.value,
                    started_at=utcnow(),
                    store_identity=store_identity,
                )
                db.add(run)
            run_id = run.id
        logger.info(f"Started {run.kind} run {run_id} for store {store_identity or '-'}")
        return run_id

    async def finish(
        self,
        run_id: int,
        status: SyncRunStatus,
        item_count: Optional[int] = None,
        error_message: Optional[str] = None,
        error_detail: Any = None,
        meta: Optional[Dict[str, Any]] = None,
        store_identity: Optional[str] = None,
    ) -> None:
        """Close a pending run. A run that is already closed is left as it is."""
        async with self.store.session() as db:
            async with db.begin():
                run = await db.get(SyncRunLog, run_id)
                if run is None:
                    logger.warning(f"Sync run {run_id} not found, cannot finish it")
                    return
                if run.status != SyncRunStatus.PENDING.value:
                    logger.warning(f"Sync run {run_id} is already {run.status}")
                    return

                run.status = status.value
                run.finished_at = utcnow()
                run.item_count = item_count
                run.error_message = error_message
                if error_detail is not None:
                    run.error_detail = (
                        error_detail if isinstance(error_detail, str)
                        else safe_json(error_detail, MAX_ERROR_DETAIL_CHARS)
                    )
                run.meta = meta
                if store_identity:
                    run.store_identity = store_identity

        logger.info(f"Finished run {run_id} with status {status.value} (items={item_count})")
        await self.prune()

    async def prune(self, days: Optional[int] = None) -> int:
        """Delete runs whose finish (or start) time is older than `days`"""
        cutoff = utcnow() - timedelta(days=days or self.retention_days)
        async with self.store.session() as db:
            async with db.begin():
                result = await db.execute(
                    delete(SyncRunLog).where(
                        func.coalesce(SyncRunLog.finished_at, SyncRunLog.started_at) < cutoff
                    )
                )
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Pruned {removed} sync runs older than {cutoff.isoformat()}")
        return removed

    async def list_runs(self, store_identity: Optional[str] = None, limit: int = 500) -> List[SyncRunLog]:
        """Newest first; with a store, that store's runs plus runs not tied to any store"""
        async with self.store.session() as db:
            stmt = select(SyncRunLog).order_by(SyncRunLog.id.desc()).limit(limit)
            if store_identity:
                stmt = stmt.where(
                    or_(SyncRunLog.store_identity == store_identity, SyncRunLog.store_identity.is_(None))
                )
            result = await db.execute(stmt)
            return list(result.scalars())

    async def get_run(self, run_id: int) -> Optional[SyncRunLog]:
        async with self.store.session() as db:
            return await db.get(SyncRunLog, run_id)

    async def clear(self) -> int:
        async with self.store.session() as db:
            async with db.begin():
                result = await db.execute(delete(SyncRunLog))
        return result.rowcount or 0
