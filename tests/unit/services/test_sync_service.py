import json
from datetime import datetime, timezone

import pytest

from ozonator.schemas.credentials import StaticCredentialProvider
from ozonator.schemas.views import SalesPeriod
from ozonator.services.api_archive_service import ApiExchange
from ozonator.services.sync_service import SyncService
from tests.conftest import TEST_STORE
from tests.mocks.fake_ozon import Reply, info_for, product_list_page

LIST_PATH = "/v3/product/list"
INFO_PATH = "/v3/product/info/list"
WAREHOUSE_PATH = "/v1/warehouse/list"
PLACEMENT_PATH = "/v1/product/placement-zone/info"
FBO_PATH = "/v2/posting/fbo/list"
FBS_PATH = "/v3/posting/fbs/list"

CATALOG_INFO = {
    pid: {"id": pid, "offer_id": f"OFF-{pid}", "name": f"Product {pid}", "sku": 9000 + pid, "is_visible": True}
    for pid in range(1, 6)
}


def entries(*pids):
    return [{"product_id": pid, "offer_id": f"OFF-{pid}", "archived": False} for pid in pids]


def script_catalog(fake_api, *pages):
    fake_api.on(LIST_PATH, *pages)
    fake_api.on(INFO_PATH, lambda body: info_for(body, CATALOG_INFO))
    fake_api.on(WAREHOUSE_PATH, {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on(PLACEMENT_PATH, lambda body: {"products": [
        {"sku": sku, "placement_zone": "A"} for sku in body.get("skus", [])
    ]})
    fake_api.on("/v1/seller/info", {"result": {"name": "My Shop"}})


@pytest.fixture
def service(store, credentials, client_factory):
    return SyncService(store, credentials, client_factory)


@pytest.mark.asyncio
async def test_catalog_sync_over_two_pages(service, fake_api):
    script_catalog(
        fake_api,
        product_list_page(entries(1, 2), last_id="cursor-1", total=3),
        product_list_page(entries(3), last_id="cursor-2", total=3),
    )

    result = await service.run_catalog_sync()

    assert result.ok is True
    assert result.item_count == 3
    assert result.page_count == 2
    assert result.added_count == 3
    assert result.placement_row_count == 3
    assert result.placement_warning is None

    products = await service.read_catalog()
    assert [p.offer_id for p in products] == ["OFF-1", "OFF-2", "OFF-3"]
    assert products[0].marketplace_sku == "9001"
    assert products[0].visibility.value == "visible"

    list_bodies = fake_api.calls_to(LIST_PATH)
    assert [b["last_id"] for b in list_bodies] == ["", "cursor-1"]

    [run] = await service.list_runs()
    assert run.kind == "catalog-sync"
    assert run.status == "success"
    assert run.item_count == 3
    assert run.meta["added"] == 3
    assert run.meta["store_name"] == "My Shop"
    assert run.meta["placement_row_count"] == 3


@pytest.mark.asyncio
async def test_second_sync_mirrors_remote_set(service, fake_api):
    script_catalog(fake_api, product_list_page(entries(1, 2, 3)))
    await service.run_catalog_sync()

    script_catalog(fake_api, product_list_page(entries(2, 3, 4)))
    result = await service.run_catalog_sync()

    assert result.ok is True
    assert result.item_count == 3
    assert result.added_count == 1
    assert [p.offer_id for p in await service.read_catalog()] == ["OFF-2", "OFF-3", "OFF-4"]

    latest = (await service.list_runs())[0]
    assert latest.meta["removed"] == 1


@pytest.mark.asyncio
async def test_listing_failure_is_logged_and_keeps_catalog(service, fake_api):
    script_catalog(fake_api, product_list_page(entries(1, 2)))
    await service.run_catalog_sync()

    fake_api.on(LIST_PATH, Reply(403, {"code": 7, "message": "Api-key is deactivated"}))
    result = await service.run_catalog_sync()

    assert result.ok is False
    assert result.error == "Api-key is deactivated"
    assert len(await service.read_catalog()) == 2

    latest = (await service.list_runs())[0]
    assert latest.status == "error"
    assert latest.error_message == "Api-key is deactivated"
    assert json.loads(latest.error_detail)["http_status"] == 403


@pytest.mark.asyncio
async def test_pagination_ceiling_fails_the_run(service, fake_api, monkeypatch):
    monkeypatch.setattr(service.settings, "MAX_SYNC_PAGES", 3)
    counter = {"page": 0}

    def endless(body):
        counter["page"] += 1
        return product_list_page(entries(1), last_id=f"cursor-{counter['page']}")

    script_catalog(fake_api, endless)

    result = await service.run_catalog_sync()

    assert result.ok is False
    assert "3 pages" in result.error
    assert len(fake_api.calls_to(LIST_PATH)) == 3


@pytest.mark.asyncio
async def test_empty_placement_result_keeps_previous_rows(service, fake_api):
    script_catalog(fake_api, product_list_page(entries(1)))
    await service.run_catalog_sync()

    fake_api.on(PLACEMENT_PATH, {"products": []})
    result = await service.run_catalog_sync()

    assert result.ok is True
    assert result.placement_row_count == 0
    assert "previous placement data was kept" in result.placement_warning

    [row] = await service.read_stock_view()
    assert row.placement_zone == "A"
    assert (await service.list_runs())[0].meta["placement_kept"] is True


@pytest.mark.asyncio
async def test_placement_failure_does_not_fail_sync(service, fake_api):
    script_catalog(fake_api, product_list_page(entries(1)))
    fake_api.on(WAREHOUSE_PATH, Reply(None))

    result = await service.run_catalog_sync()

    assert result.ok is True
    assert result.item_count == 1
    assert result.placement_warning.startswith("Network error")


@pytest.mark.asyncio
async def test_credential_check_resolves_store_name(service, credentials, fake_api):
    fake_api.on(LIST_PATH, product_list_page(entries(1)))
    fake_api.on("/v1/seller/info", {"result": {"name": "  My Shop  "}})

    result = await service.run_credential_check()

    assert result.ok is True
    assert result.resolved_display_name == "My Shop"
    assert credentials.load().cached_display_name == "My Shop"
    assert fake_api.calls_to(LIST_PATH) == [{"filter": {"visibility": "ALL"}, "last_id": "", "limit": 1}]

    [run] = await service.list_runs()
    assert run.kind == "credential-check"
    assert run.meta == {"store_identity": TEST_STORE, "store_name": "My Shop"}


@pytest.mark.asyncio
async def test_credential_check_survives_missing_store_name(service, fake_api):
    fake_api.on(LIST_PATH, product_list_page([]))

    result = await service.run_credential_check()

    assert result.ok is True
    assert result.resolved_display_name is None


@pytest.mark.asyncio
async def test_credential_check_rejected(service, fake_api):
    fake_api.on(LIST_PATH, Reply(401, {"message": "Invalid Api-Key"}))

    result = await service.run_credential_check()

    assert result.ok is False
    assert result.error == "Invalid Api-Key"
    assert (await service.list_runs())[0].status == "error"


@pytest.mark.asyncio
async def test_missing_credentials(store, client_factory, fake_api):
    service = SyncService(store, StaticCredentialProvider(), client_factory)

    check = await service.run_credential_check()
    sync = await service.run_catalog_sync()

    assert check.ok is False
    assert sync.ok is False
    assert "not configured" in sync.error
    assert fake_api.calls == []
    runs = await service.list_runs()
    assert [r.status for r in runs] == ["error", "error"]
    assert all(r.store_identity is None for r in runs)


@pytest.mark.asyncio
async def test_sales_view_without_credentials_reads_archive(store, client_factory):
    service = SyncService(store, StaticCredentialProvider(), client_factory)

    assert await service.read_sales_view(live=True) == []


@pytest.mark.asyncio
async def test_sales_view_of_another_store_reads_its_archive(service, fake_api):
    period = SalesPeriod(
        since=datetime(2024, 1, 1, tzinfo=timezone.utc),
        to=datetime(2024, 1, 31, tzinfo=timezone.utc),
    )
    await service.archive.record(ApiExchange(
        method="POST",
        endpoint=FBO_PATH,
        store_identity="OTHER",
        response_body={"result": [
            {"posting_number": "P-OTHER", "in_process_at": "2024-01-10T10:00:00Z", "products": [{"sku": 1, "offer_id": "X"}]},
        ]},
        http_status=200,
    ))
    live = {"result": [
        {"posting_number": "P-CONFIGURED", "in_process_at": "2024-01-10T10:00:00Z", "products": [{"sku": 2, "offer_id": "Y"}]},
    ]}
    fake_api.on(FBO_PATH, live)
    fake_api.on(FBS_PATH, live)

    rows = await service.read_sales_view("OTHER", period, live=True)

    assert [(r.posting_number, r.store_identity, r.source) for r in rows] == [("P-OTHER", "OTHER", "archive")]
    assert fake_api.calls == []

    rows = await service.read_sales_view(TEST_STORE, period, live=True)

    assert {(r.posting_number, r.source) for r in rows} == {("P-CONFIGURED", "live")}
