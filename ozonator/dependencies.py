from fastapi import Request

from ozonator.services.sync_service import SyncService


def get_sync_service(request: Request) -> SyncService:
    """Dependency returning the engine bound to this app's store and credentials."""
    return request.app.state.sync_service
