# ozonator/main.py
"""
Local HTTP surface of the engine for the desktop shell.

The shell owns credential storage and hands a CredentialProvider in; the app
itself only binds the engine to one local store.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ozonator.core.config import get_settings
from ozonator.core.logging_config import configure_logging
from ozonator.database import LocalStore
from ozonator.routes import data, health, sync
from ozonator.schemas.credentials import CredentialProvider, StaticCredentialProvider
from ozonator.services.sync_service import ClientFactory, SyncService

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[LocalStore] = None,
    credentials: Optional[CredentialProvider] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """
    Build the FastAPI app. Without arguments the store and credentials come
    from settings (DATABASE_URL, OZON_CLIENT_ID, OZON_API_KEY).
    """
    settings = get_settings()
    store = store or LocalStore(settings.DATABASE_URL)
    credentials = credentials or StaticCredentialProvider.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.init_models()
        logger.info(f"Local store ready at {store.database_url}")
        yield
        await store.dispose()

    app = FastAPI(title="Ozonator", lifespan=lifespan)
    app.state.store = store
    app.state.credentials = credentials
    app.state.sync_service = SyncService(store, credentials, client_factory)

    app.include_router(health.router)
    app.include_router(sync.router)
    app.include_router(data.router)

    return app


def build_default_app() -> FastAPI:
    """uvicorn factory entry point"""
    configure_logging()
    return create_app()
