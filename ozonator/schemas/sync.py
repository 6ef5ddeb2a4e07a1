"""
Run results and diagnostics exposed to the shell.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel

from ozonator.schemas.base import BaseSchema


class CredentialCheckResult(BaseModel):
    ok: bool
    resolved_display_name: Optional[str] = None
    error: Optional[str] = None


class CatalogSyncResult(BaseModel):
    ok: bool
    item_count: int = 0
    page_count: int = 0
    added_count: int = 0
    placement_row_count: int = 0
    placement_warning: Optional[str] = None
    error: Optional[str] = None


class SyncRunOut(BaseSchema):
    id: int
    kind: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    item_count: Optional[int] = None
    error_message: Optional[str] = None
    error_detail: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    store_identity: Optional[str] = None


class RegistryEntryOut(BaseSchema):
    registry_key: str
    method: str
    endpoint: str
    entity_hint: Optional[str] = None
    key_candidates: List[str] = []
    observed_paths: List[str] = []
    envelope_shapes: List[str] = []
    sample_count: int
    first_seen_at: datetime
    last_seen_at: datetime
