"""SQS consumer that turns queued CSV rows into product and stock rows.

Each message body is a JSON object shaped like
``{"id"?, "title", "description"?, "price", "image"?, "count"?}``.
Invalid records are logged and skipped; store faults propagate so that the
queue redelivers the whole batch. Puts are keyed on id, so a redelivered
batch overwrites instead of duplicating.
"""
import json
import logging
import uuid
from decimal import Decimal

from .catalog import has_required_fields
from .errors import NotificationError, ValidationError
from .responses import dumps
from .store import coerce_int, make_product, make_stock

logger = logging.getLogger(__name__)


def parse_record(record):
    try:
        data = json.loads(record.get("body") or "", parse_float=Decimal)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def build_product(data: dict, strict_numbers: bool = False) -> tuple:
    product_id = data.get("id") or str(uuid.uuid4())
    fields = dict(data, price=coerce_int(data.get("price"), strict_numbers, "price"))
    product = make_product(fields, str(product_id))
    stock = make_stock(product["id"], coerce_int(data.get("count"), strict_numbers, "count"))
    return product, stock


def process_batch(event, store, notifier, strict_numbers=False, strict_notifications=False):
    records = event.get("Records", [])
    created = []

    for record in records:
        message_id = record.get("messageId")
        data = parse_record(record)
        if data is None:
            logger.warning("Skipping message %s: body is not a JSON object", message_id)
            continue

        if not has_required_fields(data):
            logger.warning("Skipping message %s: missing title or price: %s", message_id, data)
            continue

        try:
            product, stock = build_product(data, strict_numbers)
        except ValidationError as e:
            logger.warning("Skipping message %s: %s", message_id, e.message)
            continue

        try:
            store.put_product(product)
            store.put_stock(stock)
        except ValidationError as e:
            logger.warning("Skipping message %s: %s", message_id, e.message)
            continue
        logger.info("Created product %s - %s", product["id"], product["title"])
        created.append(product)

    if created:
        try:
            notifier.notify_products_created(created)
        except NotificationError:
            if strict_notifications:
                raise
            logger.exception("Notification for %d products was not sent", len(created))

    logger.info("Batch processing completed. Processed %d messages.", len(records))
    return {
        "statusCode": 200,
        "body": dumps(
            {
                "message": f"Successfully processed {len(records)} product records",
                "productsCreated": len(created),
            }
        ),
    }
