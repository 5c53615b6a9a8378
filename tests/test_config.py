import pytest

from product_service.config import Settings, parse_users
from product_service.errors import ConfigError


def test_defaults():
    s = Settings.from_env({})
    assert s.products_table == "products"
    assert s.stock_table == "stock"
    assert s.strict_numbers is False
    assert s.strict_notifications is False
    assert s.signed_url_expires == 900
    assert s.upload_prefix == "uploaded/"


def test_reads_environment():
    s = Settings.from_env(
        {
            "PRODUCTS_TABLE_NAME": "p",
            "STOCK_TABLE_NAME": "s",
            "SNS_TOPIC_ARN": "arn:topic",
            "STRICT_NUMBERS": "True",
            "STRICT_NOTIFICATIONS": "0",
            "SIGNED_URL_EXPIRES": "60",
            "AUTH_USERS": "admin=pw, guest=x=y",
            "LOG_LEVEL": "debug",
        }
    )
    assert (s.products_table, s.stock_table, s.topic_arn) == ("p", "s", "arn:topic")
    assert s.strict_numbers is True
    assert s.strict_notifications is False
    assert s.signed_url_expires == 60
    assert s.auth_users == {"admin": "pw", "guest": "x=y"}
    assert s.log_level == "DEBUG"


def test_bad_integer_is_config_error():
    with pytest.raises(ConfigError):
        Settings.from_env({"SIGNED_URL_EXPIRES": "soon"})


def test_require_missing_setting():
    with pytest.raises(ConfigError, match="topic_arn"):
        Settings.from_env({}).require("topic_arn")


def test_parse_users_ignores_junk():
    assert parse_users("nopair,=x,, a=b ") == {"a": "b"}
