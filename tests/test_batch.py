import json
from decimal import Decimal

import pytest

from conftest import FakeNotifier, FakeStore, sqs_event
from product_service.batch import build_product, process_batch
from product_service.errors import NotificationError, StoreError, ValidationError


def rows(n):
    return [{"title": f"Item {i}", "price": str(100 * i), "count": str(i)} for i in range(1, n + 1)]


def test_batch_skips_invalid_record_and_creates_the_rest(store, notifier):
    records = rows(5)
    del records[2]["price"]

    resp = process_batch(sqs_event(*records), store, notifier)

    assert len(store.products) == 4
    assert len(store.stock) == 4
    assert "Item 3" not in {p["title"] for p in store.products.values()}
    assert notifier.sent[0]["productsCreated"] == 4
    assert json.loads(resp["body"])["productsCreated"] == 4


def test_batch_writes_product_and_stock_pair(store, notifier):
    process_batch(sqs_event({"id": "p1", "title": "Cap", "price": "15", "count": "3", "image": "x.png"}), store, notifier)

    assert store.products["p1"] == {"id": "p1", "title": "Cap", "description": "", "price": 15, "image": "x.png"}
    assert store.stock["p1"] == {"product_id": "p1", "count": 3}
    assert [w[0] for w in store.writes] == ["products", "stock"]


def test_batch_generates_ids_when_absent(store, notifier):
    process_batch(sqs_event({"title": "A", "price": 1}, {"title": "B", "price": 2}), store, notifier)
    assert len(store.products) == 2
    assert all(pid for pid in store.products)


def test_redelivered_message_does_not_duplicate(store, notifier):
    event = sqs_event({"id": "same", "title": "Cap", "price": 10, "count": 1})
    process_batch(event, store, notifier)
    process_batch(event, store, notifier)

    assert list(store.products) == ["same"]
    assert list(store.stock) == ["same"]


def test_lenient_coercion_defaults_bad_numbers_to_zero(store, notifier):
    process_batch(sqs_event({"id": "p", "title": "Cap", "price": "abc", "count": "lots"}), store, notifier)
    assert store.products["p"]["price"] == 0
    assert store.stock["p"]["count"] == 0


def test_strict_coercion_skips_bad_numbers(store, notifier):
    event = sqs_event({"id": "bad", "title": "Cap", "price": "abc"}, {"id": "ok", "title": "Hat", "price": "7"})
    process_batch(event, store, notifier, strict_numbers=True)

    assert list(store.products) == ["ok"]
    assert notifier.sent[0]["productsCreated"] == 1


def test_unparsable_bodies_are_skipped(store, notifier):
    process_batch(sqs_event("{not json", "[1, 2]", {"title": "Cap", "price": 1}), store, notifier)
    assert len(store.products) == 1


def test_no_notification_when_nothing_created(store, notifier):
    resp = process_batch(sqs_event({"title": "no price"}), store, notifier)
    assert notifier.sent == []
    assert resp["statusCode"] == 200


def test_notification_lists_created_products(store, notifier):
    process_batch(sqs_event({"id": "a", "title": "Cap", "price": "12.9"}), store, notifier)
    assert notifier.sent == [{"productsCreated": 1, "products": [{"id": "a", "title": "Cap", "price": 12}]}]


def test_notification_failure_is_best_effort_by_default(store):
    resp = process_batch(sqs_event({"title": "Cap", "price": 1}), store, FakeNotifier(fail=True))
    assert resp["statusCode"] == 200
    assert len(store.products) == 1


def test_notification_failure_fails_batch_in_strict_mode(store):
    with pytest.raises(NotificationError):
        process_batch(sqs_event({"title": "Cap", "price": 1}), store, FakeNotifier(fail=True), strict_notifications=True)


def test_store_fault_propagates_for_redelivery(notifier):
    store = FakeStore()
    store.fail_on_put = True
    with pytest.raises(StoreError):
        process_batch(sqs_event({"title": "Cap", "price": 1}), store, notifier)
    assert notifier.sent == []


def test_empty_event(store, notifier):
    resp = process_batch({}, store, notifier)
    assert json.loads(resp["body"])["productsCreated"] == 0


def test_build_product_strict_rejects_negative_count():
    with pytest.raises(ValidationError):
        build_product({"title": "Cap", "price": 1, "count": "-2"}, strict_numbers=True)


def test_oversized_price_is_lenient_zero(store, notifier):
    process_batch(sqs_event({"id": "big", "title": "Cap", "price": "1" * 39}), store, notifier)
    assert store.products["big"]["price"] == 0


def test_oversized_price_is_skipped_in_strict_mode(store, notifier):
    process_batch(sqs_event({"id": "big", "title": "Cap", "price": "1" * 39}), store, notifier, strict_numbers=True)
    assert store.products == {}


def test_floats_in_body_become_decimals(store, notifier):
    process_batch(sqs_event('{"id": "f", "title": "Cap", "price": 1, "description": 2.5}'), store, notifier)
    assert store.products["f"]["description"] == Decimal("2.5")


def test_value_dynamodb_rejects_is_skipped_not_raised(unsent_store, notifier):
    event = sqs_event(
        '{"id": "a", "title": "Cap", "price": 1, "description": 1e400}',
        '{"id": "b", "title": "Hat", "price": 1, "image": 1e400}',
    )
    resp = process_batch(event, unsent_store, notifier)

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"])["productsCreated"] == 0
    assert notifier.sent == []
