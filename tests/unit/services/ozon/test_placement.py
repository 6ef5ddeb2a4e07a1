import pytest
from sqlalchemy import select

from ozonator.models import PlacementRow
from ozonator.services.ozon.placement import (
    NO_PLACEMENTS_WARNING,
    NO_WAREHOUSES_WARNING,
    PlacementReconciler,
    ResolvedPlacement,
    resolve_placement,
)
from tests.conftest import TEST_STORE
from tests.mocks.fake_ozon import Reply

WAREHOUSES = {"result": [
    {"warehouse_id": 1, "name": "Main"},
    {"warehouse_id": "2", "name": "Second"},
    {"warehouse_id": "n/a", "name": "Broken"},
]}


def zones(body):
    """Every requested SKU sits in zone A, offer ids in zone B"""
    products = [{"sku": sku, "placement_zone": "A"} for sku in body.get("skus", [])]
    products += [{"sku": offer, "zone": {"name": "B"}} for offer in body.get("offer_ids", [])]
    return {"products": products}


async def snapshot(store, store_identity=TEST_STORE):
    async with store.session() as db:
        result = await db.execute(
            select(PlacementRow)
            .where(PlacementRow.store_identity == store_identity)
            .order_by(PlacementRow.warehouse_id, PlacementRow.sku)
        )
        return list(result.scalars())


async def seed(store, rows):
    reconciler = PlacementReconciler(client=None, store=store)
    await reconciler.replace_snapshot(TEST_STORE, rows)


OLD_ROW = ResolvedPlacement(
    warehouse_id=99, warehouse_name="Old", sku="555", ozon_sku="555", seller_sku=None, placement_zone="Z"
)


def test_resolve_placement_reads_sku_by_request_space():
    by_ozon = resolve_placement({"sku": 900101, "placement_zone": "A"}, 1, "Main", by_seller_sku=False)
    by_seller = resolve_placement({"sku": "ABC-1"}, 1, "Main", by_seller_sku=True)

    assert (by_ozon.ozon_sku, by_ozon.seller_sku, by_ozon.sku) == ("900101", None, "900101")
    assert (by_seller.ozon_sku, by_seller.seller_sku, by_seller.sku) == (None, "ABC-1", "ABC-1")
    assert resolve_placement({"placement_zone": "A"}, 1, "Main", False) is None


@pytest.mark.asyncio
async def test_sync_writes_rows_per_warehouse(store, fake_api, ozon_client):
    fake_api.on("/v1/warehouse/list", WAREHOUSES)
    fake_api.on("/v1/product/placement-zone/info", zones)

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], ["ABC-1"])

    assert result.row_count == 4
    assert result.kept is False
    assert result.warning is None

    rows = await snapshot(store)
    assert [(r.warehouse_id, r.sku, r.placement_zone) for r in rows] == [
        (1, "900101", "A"),
        (1, "ABC-1", "B"),
        (2, "900101", "A"),
        (2, "ABC-1", "B"),
    ]
    assert rows[0].warehouse_name == "Main"
    assert rows[1].seller_sku == "ABC-1"
    assert rows[1].ozon_sku is None


@pytest.mark.asyncio
async def test_sync_requests_chunks(store, fake_api, ozon_client):
    fake_api.on("/v1/warehouse/list", {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on("/v1/product/placement-zone/info", zones)

    await PlacementReconciler(ozon_client, store, chunk_size=2).sync(TEST_STORE, ["1", "2", "3"], [])

    assert fake_api.calls_to("/v1/product/placement-zone/info") == [
        {"warehouse_id": 1, "skus": ["1", "2"]},
        {"warehouse_id": 1, "skus": ["3"]},
    ]


@pytest.mark.asyncio
async def test_duplicate_placements_collapse(store, fake_api, ozon_client):
    fake_api.on("/v1/warehouse/list", {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on("/v1/product/placement-zone/info", {"products": [
        {"sku": "900101", "placement_zone": "A"},
        {"sku": "900101", "placement_zone": "A"},
    ]})

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], [])

    assert result.row_count == 1
    assert len(await snapshot(store)) == 1


@pytest.mark.asyncio
async def test_successful_sync_replaces_previous_snapshot(store, fake_api, ozon_client):
    await seed(store, [OLD_ROW])
    fake_api.on("/v1/warehouse/list", {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on("/v1/product/placement-zone/info", zones)

    await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], [])

    rows = await snapshot(store)
    assert [(r.warehouse_id, r.sku) for r in rows] == [(1, "900101")]


@pytest.mark.asyncio
async def test_empty_result_keeps_previous_snapshot(store, fake_api, ozon_client):
    await seed(store, [OLD_ROW])
    fake_api.on("/v1/warehouse/list", {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on("/v1/product/placement-zone/info", {"products": []})

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], ["ABC-1"])

    assert result.kept is True
    assert result.warning == NO_PLACEMENTS_WARNING
    assert [r.sku for r in await snapshot(store)] == ["555"]


@pytest.mark.asyncio
async def test_no_warehouses_keeps_previous_snapshot(store, fake_api, ozon_client):
    await seed(store, [OLD_ROW])
    fake_api.on("/v1/warehouse/list", {"result": []})

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], [])

    assert result.kept is True
    assert result.warning == NO_WAREHOUSES_WARNING
    assert len(await snapshot(store)) == 1


@pytest.mark.asyncio
async def test_remote_error_keeps_previous_snapshot(store, fake_api, ozon_client):
    await seed(store, [OLD_ROW])
    fake_api.on("/v1/warehouse/list", {"result": [{"warehouse_id": 1, "name": "Main"}]})
    fake_api.on("/v1/product/placement-zone/info", Reply(500, {"message": "placement service down"}))

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, ["900101"], [])

    assert result.kept is True
    assert result.warning == "placement service down"
    assert len(await snapshot(store)) == 1


@pytest.mark.asyncio
async def test_empty_sku_lists_clear_snapshot(store, fake_api, ozon_client):
    await seed(store, [OLD_ROW])

    result = await PlacementReconciler(ozon_client, store).sync(TEST_STORE, [], [])

    assert result.row_count == 0
    assert result.kept is False
    assert await snapshot(store) == []
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_snapshot_is_scoped_to_store(store):
    reconciler = PlacementReconciler(client=None, store=store)
    await reconciler.replace_snapshot("other-store", [OLD_ROW])
    await reconciler.replace_snapshot(TEST_STORE, [])

    assert len(await snapshot(store, "other-store")) == 1
