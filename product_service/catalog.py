"""Catalog reads and writes over the products and stock tables.

Reads join each product with its stock row. A product without a stock row
reports ``count = 0``.
"""
import logging
import uuid

from .errors import BadRequest, NotFound, ValidationError
from .store import PRODUCT_FIELDS, coerce_int, make_product, make_stock

logger = logging.getLogger(__name__)


def is_present(value) -> bool:
    return value is not None and value != ""


def has_required_fields(fields: dict) -> bool:
    title = fields.get("title")
    return isinstance(title, str) and title.strip() != "" and is_present(fields.get("price"))


def _joined(product: dict, count) -> dict:
    out = {name: product.get(name) for name in PRODUCT_FIELDS}
    out["count"] = count
    return out


def list_available(store) -> list:
    products = store.scan_products()
    if not products:
        return []

    counts = {}
    for stock in store.scan_stock():
        counts[stock.get("product_id")] = stock.get("count", 0)

    return [_joined(p, counts.get(p.get("id"), 0)) for p in products]


def get_by_id(store, product_id) -> dict:
    if not isinstance(product_id, str) or not product_id.strip():
        raise BadRequest("Product ID is required")

    product = store.get_product(product_id)
    if product is None:
        raise NotFound("Product not found")

    stock = store.get_stock(product_id)
    count = stock.get("count", 0) if stock else 0
    return _joined(product, count)


def create_product(store, fields: dict) -> dict:
    if not has_required_fields(fields):
        raise ValidationError("Title and price are required")

    product = make_product(fields, str(uuid.uuid4()))
    store.put_product(product)
    # Keep the products and stock tables aligned, as the batch path does.
    store.put_stock(make_stock(product["id"], coerce_int(fields.get("count"))))
    logger.info("Created product %s - %s", product["id"], product["title"])
    return product
