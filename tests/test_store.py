from decimal import Decimal

import pytest

from product_service.errors import StoreError, ValidationError
from product_service.store import coerce_int, make_product


def test_put_product_is_keyed_put(ddb_store):
    store, stubber = ddb_store
    stubber.add_response(
        "put_item",
        {},
        {"TableName": "products", "Item": {"id": "A", "title": "Cap", "price": 10}},
    )
    store.put_product({"id": "A", "title": "Cap", "price": 10})


def test_get_product_missing_returns_none(ddb_store):
    store, stubber = ddb_store
    stubber.add_response("get_item", {}, {"TableName": "products", "Key": {"id": "nope"}})
    assert store.get_product("nope") is None


def test_get_stock_deserializes_numbers(ddb_store):
    store, stubber = ddb_store
    stubber.add_response(
        "get_item",
        {"Item": {"product_id": {"S": "A"}, "count": {"N": "4"}}},
        {"TableName": "stock", "Key": {"product_id": "A"}},
    )
    assert store.get_stock("A") == {"product_id": "A", "count": Decimal("4")}


def test_scan_follows_last_evaluated_key(ddb_store):
    store, stubber = ddb_store
    stubber.add_response(
        "scan",
        {"Items": [{"id": {"S": "A"}}], "LastEvaluatedKey": {"id": {"S": "A"}}},
        {"TableName": "products"},
    )
    stubber.add_response(
        "scan",
        {"Items": [{"id": {"S": "B"}}]},
        {"TableName": "products", "ExclusiveStartKey": {"id": "A"}},
    )
    assert [p["id"] for p in store.scan_products()] == ["A", "B"]


def test_client_error_becomes_store_error(ddb_store):
    store, stubber = ddb_store
    stubber.add_client_error("scan", service_error_code="ProvisionedThroughputExceededException")
    with pytest.raises(StoreError) as exc:
        store.scan_stock()
    assert "ProvisionedThroughputExceededException" in str(exc.value)


def test_make_product_defaults_optional_fields():
    assert make_product({"title": "Cap", "price": 3}, "id-1") == {
        "id": "id-1",
        "title": "Cap",
        "description": "",
        "price": 3,
        "image": "",
    }


@pytest.mark.parametrize(
    "raw, expected",
    [("12", 12), ("12.7", 12), (" 8 ", 8), (5, 5), (Decimal("3.5"), 3), (None, 0), ("", 0), ("abc", 0), ("-1", 0), (True, 0), ("1" * 39, 0), ("9" * 38, int("9" * 38))],
)
def test_coerce_int_lenient(raw, expected):
    assert coerce_int(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "-1", "nan", [1], "1" * 39, 10**38])
def test_coerce_int_strict_rejects(raw):
    with pytest.raises(ValidationError):
        coerce_int(raw, strict=True, name="price")


def test_coerce_int_strict_allows_missing():
    assert coerce_int(None, strict=True) == 0


@pytest.mark.parametrize("value", [2.5, Decimal("1" * 39), Decimal("1e400")])
def test_unserializable_value_is_validation_error(unsent_store, value):
    with pytest.raises(ValidationError):
        unsent_store.put_product({"id": "A", "title": "Cap", "price": value})
