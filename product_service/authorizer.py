import base64
import binascii
import hmac
import logging

logger = logging.getLogger(__name__)


class Unauthorized(Exception):
    # Only REST API TOKEN authorizers map this exact message to a 401.
    # An HTTP API REQUEST authorizer turns any raised error into a 500.
    def __init__(self):
        super().__init__("Unauthorized")


def generate_policy(principal_id: str, effect: str, resource: str) -> dict:
    return {
        "principalId": principal_id,
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "execute-api:Invoke",
                    "Effect": effect,
                    "Resource": resource,
                }
            ],
        },
    }


def _token(event) -> str | None:
    kind = event.get("type")
    if kind == "TOKEN":
        return event.get("authorizationToken")
    if kind == "REQUEST":
        headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
        return headers.get("authorization")
    return None


def decode_basic(token: str) -> tuple:
    """Split a ``Basic <base64 login:password>`` token.

    Raises ValueError when the scheme, the base64 or the pair is malformed.
    """
    scheme, _, encoded = token.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        raise ValueError("not a Basic token")
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("credentials are not base64") from e
    login, sep, password = decoded.partition(":")
    if not sep or not login:
        raise ValueError("credentials are not login:password")
    return login, password


def authorize(event, users: dict) -> dict:
    token = _token(event)
    resource = event.get("methodArn", "*")
    if not token:
        logger.info("No authorization token provided")
        if event.get("type") == "REQUEST":
            return generate_policy("anonymous", "Deny", resource)
        raise Unauthorized()

    try:
        login, password = decode_basic(token)
    except ValueError as e:
        logger.info("Malformed authorization token: %s", e)
        return generate_policy("anonymous", "Deny", resource)

    stored = users.get(login)
    if stored is None:
        logger.info("Unknown user %s", login)
        return generate_policy(login, "Deny", resource)

    if not hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8")):
        logger.info("Invalid password for user %s", login)
        return generate_policy(login, "Deny", resource)

    logger.info("User %s authenticated", login)
    return generate_policy(login, "Allow", resource)
