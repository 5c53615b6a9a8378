import io
import json

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from product_service.errors import NotificationError, StoreError
from product_service.store import CatalogStore


class FakeStore:
    """In-memory stand-in for CatalogStore; puts are keyed upserts."""

    def __init__(self, products=None, stock=None):
        self.products = {p["id"]: dict(p) for p in products or []}
        self.stock = {s["product_id"]: dict(s) for s in stock or []}
        self.writes = []
        self.reads = 0
        self.fail_on_put = False

    def put_product(self, product):
        if self.fail_on_put:
            raise StoreError("put_item on products failed: InternalServerError")
        self.writes.append(("products", dict(product)))
        self.products[product["id"]] = dict(product)

    def get_product(self, product_id):
        self.reads += 1
        return self.products.get(product_id)

    def scan_products(self):
        self.reads += 1
        return list(self.products.values())

    def put_stock(self, stock):
        if self.fail_on_put:
            raise StoreError("put_item on stock failed: InternalServerError")
        self.writes.append(("stock", dict(stock)))
        self.stock[stock["product_id"]] = dict(stock)

    def get_stock(self, product_id):
        self.reads += 1
        return self.stock.get(product_id)

    def scan_stock(self):
        self.reads += 1
        return list(self.stock.values())


class FakeNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def notify_products_created(self, products):
        if self.fail:
            raise NotificationError("SNS publish failed")
        self.sent.append(
            {
                "productsCreated": len(products),
                "products": [{"id": p["id"], "title": p["title"], "price": p["price"]} for p in products],
            }
        )


class FakeSqs:
    def __init__(self, fail_on=()):
        self.messages = []
        self.fail_on = set(fail_on)

    def send_message(self, **kwargs):
        number = int(kwargs["MessageAttributes"]["recordNumber"]["StringValue"])
        if number in self.fail_on:
            raise ClientError({"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, "SendMessage")
        self.messages.append(kwargs)
        return {"MessageId": str(len(self.messages))}


class FakeS3:
    def __init__(self, objects=None):
        self.objects = objects or {}
        self.presigned = []

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)].encode("utf-8"))}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        self.presigned.append((ClientMethod, Params, ExpiresIn))
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


def sqs_event(*bodies):
    return {
        "Records": [
            {"messageId": f"m{i}", "body": b if isinstance(b, str) else json.dumps(b)}
            for i, b in enumerate(bodies, start=1)
        ]
    }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def ddb_store():
    session = boto3.session.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    )
    ddb = session.resource("dynamodb")
    store = CatalogStore(ddb.Table("products"), ddb.Table("stock"))
    # Expected params are checked before the resource serializes them,
    # responses are in the wire format.
    with Stubber(ddb.meta.client) as stubber:
        yield store, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def unsent_store():
    """Real boto3 tables for inputs the serializer rejects before any request."""
    ddb = boto3.session.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
    ).resource("dynamodb")
    return CatalogStore(ddb.Table("products"), ddb.Table("stock"))
