import pytest

from ozonator.core.enums import Visibility
from ozonator.schemas.catalog import EnrichedProduct
from ozonator.services.catalog_service import CatalogService
from tests.conftest import TEST_STORE


def product(offer_id, **fields):
    fields.setdefault("marketplace_sku", f"sku-{offer_id}")
    fields.setdefault("seller_sku", offer_id)
    return EnrichedProduct(offer_id=offer_id, **fields)


@pytest.fixture
def catalog(store):
    return CatalogService(store)


@pytest.mark.asyncio
async def test_reconcile_inserts_products(catalog):
    result = await catalog.reconcile(TEST_STORE, [
        product("A", name="Hammer", visibility=Visibility.VISIBLE, sku_variants={"fbo": "1"}),
        product("B"),
    ])

    assert result.added_count == 2
    assert result.final_count == 2
    assert result.removed_count == 0

    items = await catalog.list_items(TEST_STORE)
    assert [i.offer_id for i in items] == ["A", "B"]
    assert items[0].name == "Hammer"
    assert items[0].visibility == "visible"
    assert items[0].sku_variants == {"fbo": "1"}


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(catalog):
    products = [product("A", name="Hammer"), product("B")]

    await catalog.reconcile(TEST_STORE, products)
    second = await catalog.reconcile(TEST_STORE, products)

    assert second.added_count == 0
    assert second.removed_count == 0
    assert second.final_count == 2


@pytest.mark.asyncio
async def test_reconcile_mirrors_listing(catalog):
    await catalog.reconcile(TEST_STORE, [product("A"), product("B"), product("C")])

    result = await catalog.reconcile(TEST_STORE, [product("B", name="Renamed"), product("D")])

    assert result.added_count == 1
    assert result.removed_count == 2
    assert await catalog.offer_ids(TEST_STORE) == {"B", "D"}
    [b] = [i for i in await catalog.list_items(TEST_STORE) if i.offer_id == "B"]
    assert b.name == "Renamed"


@pytest.mark.asyncio
async def test_empty_listing_clears_store(catalog):
    await catalog.reconcile(TEST_STORE, [product("A"), product("B")])

    result = await catalog.reconcile(TEST_STORE, [])

    assert result.final_count == 0
    assert result.removed_count == 2


@pytest.mark.asyncio
async def test_stores_are_isolated(catalog):
    await catalog.reconcile(TEST_STORE, [product("A")])
    await catalog.reconcile("other-store", [product("A"), product("Z")])

    await catalog.reconcile(TEST_STORE, [])

    assert await catalog.count(TEST_STORE) == 0
    assert await catalog.offer_ids("other-store") == {"A", "Z"}
    assert len(await catalog.list_items()) == 2


@pytest.mark.asyncio
async def test_paged_reconciliation(catalog):
    await catalog.reconcile(TEST_STORE, [product("old")])

    reconciliation = await catalog.begin_reconciliation(TEST_STORE)
    await reconciliation.apply_page([product("A"), product("B")])
    await reconciliation.apply_page([product("C")])
    result = await reconciliation.finish()

    assert result.added_count == 3
    assert result.removed_count == 1
    assert await catalog.offer_ids(TEST_STORE) == {"A", "B", "C"}


@pytest.mark.asyncio
async def test_duplicates_in_page_last_wins(catalog):
    count = await catalog.upsert_page(TEST_STORE, [product("A", name="first"), product("A", name="second")])

    assert count == 1
    [item] = await catalog.list_items(TEST_STORE)
    assert item.name == "second"


@pytest.mark.asyncio
async def test_list_items_orders_case_insensitively(catalog):
    await catalog.reconcile(TEST_STORE, [product("b-2"), product("A-1"), product("a-3")])

    items = await catalog.list_items(TEST_STORE)

    assert [i.offer_id for i in items] == ["A-1", "a-3", "b-2"]


@pytest.mark.asyncio
async def test_sku_lists(catalog):
    await catalog.reconcile(TEST_STORE, [
        product("A", marketplace_sku="100"),
        product("B", marketplace_sku=None),
        product("C", marketplace_sku="100", seller_sku=None),
    ])

    ozon_skus, seller_skus = await catalog.sku_lists(TEST_STORE)

    assert ozon_skus == ["100"]
    assert seller_skus == ["A", "B", "C"]
