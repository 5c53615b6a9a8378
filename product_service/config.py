import os
import logging
from dataclasses import dataclass, field

from botocore.config import Config

from .errors import ConfigError

TRUE_VALUES = ("1", "true", "yes", "on")


def _flag(environ, name: str, default: bool = False) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in TRUE_VALUES


def _int(environ, name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def parse_users(raw: str | None) -> dict:
    """Parse ``login=password`` pairs separated by commas."""
    users = {}
    for pair in (raw or "").split(","):
        login, sep, password = pair.strip().partition("=")
        if not sep or not login.strip():
            continue
        users[login.strip()] = password.strip()
    return users


@dataclass(frozen=True)
class Settings:
    products_table: str = "products"
    stock_table: str = "stock"
    topic_arn: str | None = None
    queue_url: str | None = None
    bucket_name: str | None = None
    upload_prefix: str = "uploaded/"
    signed_url_expires: int = 900
    strict_numbers: bool = False
    strict_notifications: bool = False
    auth_users: dict = field(default_factory=dict)
    log_level: str = "INFO"
    region: str | None = None

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            products_table=env.get("PRODUCTS_TABLE_NAME") or "products",
            stock_table=env.get("STOCK_TABLE_NAME") or "stock",
            topic_arn=env.get("SNS_TOPIC_ARN") or None,
            queue_url=env.get("SQS_QUEUE_URL") or None,
            bucket_name=env.get("BUCKET_NAME") or None,
            upload_prefix=env.get("UPLOAD_PREFIX") or "uploaded/",
            signed_url_expires=_int(env, "SIGNED_URL_EXPIRES", 900),
            strict_numbers=_flag(env, "STRICT_NUMBERS"),
            strict_notifications=_flag(env, "STRICT_NOTIFICATIONS"),
            auth_users=parse_users(env.get("AUTH_USERS")),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            region=env.get("AWS_REGION") or None,
        )

    def require(self, name: str):
        value = getattr(self, name)
        if not value:
            raise ConfigError(f"Missing required setting: {name}")
        return value


def boto_config() -> Config:
    return Config(
        connect_timeout=5,
        read_timeout=10,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def configure_logging(level: str = "INFO") -> None:
    # The Lambda runtime installs its own handler on the root logger.
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
