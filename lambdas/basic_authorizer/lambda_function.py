import logging

from product_service.authorizer import authorize
from product_service.config import Settings, configure_logging

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger()


def lambda_handler(event, context):
    # Never log the event itself: it carries the credentials.
    logger.info("Authorization request for %s", event.get("methodArn"))
    return authorize(event, settings.auth_users)
