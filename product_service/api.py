import base64
import json
import logging
from decimal import Decimal

from . import catalog
from .errors import BadRequest, CatalogError
from .responses import (
    READ_METHODS,
    WRITE_METHODS,
    error_response,
    http_method,
    json_response,
    preflight,
)

logger = logging.getLogger(__name__)


def _path_param(event, *names):
    params = event.get("pathParameters") or {}
    for name in names:
        if params.get(name):
            return params[name]
    return None


def _json_body(event) -> dict:
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw, parse_float=Decimal)
    except (ValueError, TypeError):
        raise BadRequest("Invalid request body")
    if not isinstance(body, dict):
        raise BadRequest("Invalid request body")
    return body


def _handle(event, methods, operation):
    if http_method(event) == "OPTIONS":
        return preflight(methods)
    try:
        return operation()
    except CatalogError as e:
        if e.status_code >= 500:
            logger.exception("Request failed")
            return error_response(500, "Internal Server Error", methods)
        return error_response(e.status_code, e.message, methods)
    except Exception:
        logger.exception("Unexpected error")
        return error_response(500, "Internal Server Error", methods)


def get_products_list(event, store) -> dict:
    """GET /products and GET /product/available."""
    return _handle(
        event,
        READ_METHODS,
        lambda: json_response(200, catalog.list_available(store), READ_METHODS),
    )


def get_products_by_id(event, store) -> dict:
    """GET /products/{productId}"""

    def op():
        product_id = _path_param(event, "productId", "id")
        return json_response(200, catalog.get_by_id(store, product_id), READ_METHODS)

    return _handle(event, READ_METHODS, op)


def create_product(event, store) -> dict:
    """POST /products"""

    def op():
        product = catalog.create_product(store, _json_body(event))
        return json_response(201, product, WRITE_METHODS)

    return _handle(event, WRITE_METHODS, op)
