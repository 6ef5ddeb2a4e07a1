# ozonator/routes/sync.py
"""
Run endpoints used by the desktop shell. Both return the run outcome in the
body; a failed run is still a 200 with ok=false.
"""
import logging

from fastapi import APIRouter, Depends

from ozonator.dependencies import get_sync_service
from ozonator.schemas.sync import CatalogSyncResult, CredentialCheckResult
from ozonator.services.sync_service import SyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/credentials/check", response_model=CredentialCheckResult)
async def check_credentials(service: SyncService = Depends(get_sync_service)):
    return await service.run_credential_check()


@router.post("/catalog", response_model=CatalogSyncResult)
async def sync_catalog(service: SyncService = Depends(get_sync_service)):
    result = await service.run_catalog_sync()
    if not result.ok:
        logger.warning(f"Catalog sync requested over HTTP failed: {result.error}")
    return result
