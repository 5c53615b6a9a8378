import json
from decimal import Decimal

READ_METHODS = "GET,OPTIONS"
WRITE_METHODS = "POST,OPTIONS"


def cors_headers(methods: str = READ_METHODS) -> dict:
    return {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": "*",
        "Access-Control-Allow-Methods": methods,
    }


def _json_default(o):
    if isinstance(o, Decimal):
        return int(o) if o % 1 == 0 else float(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def dumps(body_obj, **kwargs) -> str:
    return json.dumps(body_obj, default=_json_default, **kwargs)


def json_response(status: int, body_obj, methods: str = READ_METHODS) -> dict:
    return {
        "statusCode": status,
        "headers": cors_headers(methods),
        "body": dumps(body_obj),
    }


def error_response(status: int, message: str, methods: str = READ_METHODS) -> dict:
    return json_response(status, {"message": message}, methods)


def preflight(methods: str = READ_METHODS) -> dict:
    return {"statusCode": 200, "headers": cors_headers(methods), "body": ""}


def http_method(event) -> str:
    # REST API events carry httpMethod, HTTP API (v2) events nest it.
    method = (event or {}).get("httpMethod")
    if not method:
        method = (event or {}).get("requestContext", {}).get("http", {}).get("method", "")
    return method.upper()


def request_summary(event) -> dict:
    """The parts of an API event that are safe to log; headers and body are left out."""
    event = event or {}
    return {
        "method": http_method(event),
        "route": event.get("routeKey") or event.get("resource") or event.get("rawPath") or event.get("path"),
        "pathParameters": event.get("pathParameters"),
        "queryStringParameters": event.get("queryStringParameters"),
    }
