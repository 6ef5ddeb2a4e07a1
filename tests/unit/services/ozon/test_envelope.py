import pytest

from ozonator.services.ozon.envelope import extract_cursor, extract_items, extract_total, items_or_empty

ITEMS = [{"offer_id": "A"}, {"offer_id": "B"}]


@pytest.mark.parametrize("payload, shape", [
    (ITEMS, "bare_array"),
    ({"result": ITEMS}, "result"),
    ({"result": {"items": ITEMS}}, "result.items"),
    ({"items": ITEMS}, "items"),
    ({"result": {"result": ITEMS}}, "result.result"),
])
def test_known_shapes(payload, shape):
    envelope = extract_items(payload)
    assert envelope.known
    assert envelope.items == ITEMS
    assert envelope.shape == shape


def test_named_key_inside_result():
    envelope = extract_items({"result": {"postings": ITEMS, "has_next": False}}, key="postings")
    assert envelope.items == ITEMS
    assert envelope.shape == "result.postings"


@pytest.mark.parametrize("payload", [
    None,
    "text",
    {"result": {"something": 1}},
    {"data": ITEMS},
    {"result": "oops"},
])
def test_unknown_shapes_yield_empty_list(payload):
    assert not extract_items(payload).known
    assert items_or_empty(payload, endpoint="/v1/test") == []


def test_unknown_shape_is_logged(caplog):
    with caplog.at_level("INFO", logger="ozonator"):
        items_or_empty({"data": []}, endpoint="/v9/odd")
    assert "/v9/odd" in caplog.text


def test_cursor_and_total():
    payload = {"result": {"items": [], "last_id": "abc", "total": "15"}}
    assert extract_cursor(payload) == "abc"
    assert extract_total(payload) == 15

    assert extract_cursor({"last_id": "top"}) == "top"
    assert extract_cursor([]) == ""
    assert extract_total({"result": {"total": True}}) is None
    assert extract_total({"result": {}}) is None
