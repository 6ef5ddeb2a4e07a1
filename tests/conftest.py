# tests/conftest.py
import pytest

from ozonator.core.config import clear_settings_cache
from ozonator.database import LocalStore
from ozonator.schemas.credentials import Credential, StaticCredentialProvider
from ozonator.services.api_archive_service import RawExchangeArchive
from ozonator.services.ozon.client import OzonClient
from tests.mocks.fake_ozon import FakeOzonApi

TEST_STORE = "123456"
TEST_API_KEY = "test-api-key"


@pytest.fixture(autouse=True)
def fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
async def store(tmp_path):
    """File-backed SQLite store per test"""
    local_store = LocalStore(f"sqlite+aiosqlite:///{tmp_path / 'ozonator.db'}")
    await local_store.init_models()
    yield local_store
    await local_store.dispose()


@pytest.fixture
def credential():
    return Credential(identity=TEST_STORE, api_key=TEST_API_KEY)


@pytest.fixture
def credentials():
    return StaticCredentialProvider(TEST_STORE, TEST_API_KEY)


@pytest.fixture
def fake_api():
    return FakeOzonApi()


@pytest.fixture
def archive(store):
    return RawExchangeArchive(store)


@pytest.fixture
def ozon_client(credential, archive, fake_api):
    """Real client talking to the scripted fake API"""
    return OzonClient(credential, archive=archive, transport=fake_api.transport)


@pytest.fixture
def client_factory(fake_api):
    def factory(credential, archive):
        return OzonClient(credential, archive=archive, transport=fake_api.transport)
    return factory
