import httpx
import pytest
from fastapi.testclient import TestClient

from ozonator.main import create_app
from ozonator.schemas.catalog import EnrichedProduct
from ozonator.services.catalog_service import CatalogService
from tests.conftest import TEST_STORE
from tests.mocks.fake_ozon import Reply, info_for, product_list_page


@pytest.fixture
def app(store, credentials, client_factory):
    # Lifespan does not run under ASGITransport; the store fixture already created the tables
    return create_app(store=store, credentials=credentials, client_factory=client_factory)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


def test_health(app):
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "Ozonator"}


@pytest.mark.asyncio
async def test_catalog_sync_endpoint(client, fake_api):
    fake_api.on("/v3/product/list", product_list_page([{"product_id": 1, "offer_id": "A"}]))
    fake_api.on("/v3/product/info/list", lambda body: info_for(body, {1: {"id": 1, "offer_id": "A", "sku": 100}}))
    fake_api.on("/v1/warehouse/list", {"result": []})

    response = await client.post("/sync/catalog")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["item_count"] == 1
    assert "no warehouses" in body["placement_warning"]

    products = (await client.get("/data/products")).json()
    assert [p["offer_id"] for p in products] == ["A"]
    assert products[0]["store_identity"] == TEST_STORE

    stocks = (await client.get("/data/stocks")).json()
    assert stocks[0]["marketplace_sku"] == "100"
    assert stocks[0]["warehouse_id"] is None


@pytest.mark.asyncio
async def test_failed_run_is_still_ok_response(client, fake_api):
    fake_api.on("/v3/product/list", Reply(403, {"message": "Forbidden"}))

    response = await client.post("/sync/credentials/check")

    assert response.status_code == 200
    assert response.json() == {"ok": False, "resolved_display_name": None, "error": "Forbidden"}


@pytest.mark.asyncio
async def test_products_scoped_by_store(client, store):
    await CatalogService(store).reconcile("other-store", [EnrichedProduct(offer_id="Z")])

    assert (await client.get("/data/products")).json() == []
    other = (await client.get("/data/products", params={"store": "other-store"})).json()
    assert [p["offer_id"] for p in other] == ["Z"]


@pytest.mark.asyncio
async def test_sales_rejects_inverted_period(client):
    response = await client.get("/data/sales", params={"since": "2024-02-01T00:00:00Z", "to": "2024-01-01T00:00:00Z"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_sales_offline(client):
    response = await client.get("/data/sales", params={"live": "false", "since": "2024-01-01T00:00:00Z"})

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_sync_log_and_clear(client, fake_api):
    fake_api.on("/v3/product/list", product_list_page([]))
    await client.post("/sync/credentials/check")

    runs = (await client.get("/data/sync-log")).json()
    assert [(r["kind"], r["status"]) for r in runs] == [("credential-check", "success")]

    cleared = (await client.delete("/data/sync-log")).json()
    assert cleared == {"ok": True, "removed": 1}
    assert (await client.get("/data/sync-log")).json() == []


@pytest.mark.asyncio
async def test_api_registry(client, fake_api):
    fake_api.on("/v3/product/list", product_list_page([{"product_id": 1, "offer_id": "A"}]))
    await client.post("/sync/credentials/check")

    registry = (await client.get("/data/api-registry")).json()

    keys = [entry["registry_key"] for entry in registry]
    assert "POST /v3/product/list" in keys
    [listing] = [entry for entry in registry if entry["registry_key"] == "POST /v3/product/list"]
    assert listing["entity_hint"] == "product_list"
    assert listing["envelope_shapes"] == []
    assert listing["sample_count"] == 1
