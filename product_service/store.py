import logging
from decimal import Decimal, InvalidOperation

import boto3
from botocore.exceptions import ClientError

from .config import boto_config
from .errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("id", "title", "description", "price", "image")

# DynamoDB numbers hold at most 38 significant digits.
MAX_DIGITS = 38


def make_product(fields: dict, product_id: str) -> dict:
    return {
        "id": product_id,
        "title": fields.get("title"),
        "description": fields.get("description") or "",
        "price": fields.get("price"),
        "image": fields.get("image") or "",
    }


def make_stock(product_id: str, count: int) -> dict:
    return {"product_id": product_id, "count": count}


def coerce_int(value, strict: bool = False, name: str = "value") -> int:
    """Turn a raw price/count into a non-negative int.

    "12" and "12.7" give 12 and missing input gives 0. Unparsable, negative or
    over-long input gives 0 too, or raises ValidationError when ``strict`` is set.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    try:
        if isinstance(value, bool):
            raise TypeError("boolean")
        if isinstance(value, str):
            number = int(Decimal(value.strip()))
        else:
            number = int(value)
    except (ValueError, TypeError, ArithmeticError, InvalidOperation):
        if strict:
            raise ValidationError(f"Invalid {name}: {value!r}")
        return 0
    if number < 0 or number >= 10 ** MAX_DIGITS:
        if strict:
            raise ValidationError(f"Invalid {name}: {value!r}")
        return 0
    return number


class CatalogStore:
    """Products and stock tables, related by product id."""

    def __init__(self, products_table, stock_table):
        self.products = products_table
        self.stock = stock_table

    @classmethod
    def from_settings(cls, settings, session=None):
        session = session or boto3.session.Session(region_name=settings.region)
        ddb = session.resource("dynamodb", config=boto_config())
        return cls(ddb.Table(settings.products_table), ddb.Table(settings.stock_table))

    def put_product(self, product: dict) -> None:
        self._put(self.products, product)

    def get_product(self, product_id: str):
        return self._get(self.products, {"id": product_id})

    def scan_products(self) -> list:
        return self._scan(self.products)

    def put_stock(self, stock: dict) -> None:
        self._put(self.stock, stock)

    def get_stock(self, product_id: str):
        return self._get(self.stock, {"product_id": product_id})

    def scan_stock(self) -> list:
        return self._scan(self.stock)

    def _put(self, table, item: dict) -> None:
        try:
            table.put_item(Item=item)
        except ClientError as e:
            raise StoreError(f"put_item on {table.name} failed: {_code(e)}") from e
        except (TypeError, ArithmeticError) as e:
            # Raised by the serializer before any request: floats, numbers
            # DynamoDB cannot hold.
            raise ValidationError("Unsupported value in product data") from e

    def _get(self, table, key: dict):
        try:
            resp = table.get_item(Key=key)
        except ClientError as e:
            raise StoreError(f"get_item on {table.name} failed: {_code(e)}") from e
        return resp.get("Item")

    def _scan(self, table) -> list:
        items = []
        kwargs = {}
        try:
            while True:
                resp = table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as e:
            raise StoreError(f"scan on {table.name} failed: {_code(e)}") from e
        logger.debug("Scanned %d items from %s", len(items), table.name)
        return items


def _code(err: ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "Unknown")
