import logging

from product_service import api
from product_service.config import Settings, configure_logging
from product_service.responses import dumps, request_summary
from product_service.store import CatalogStore

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger()

store = CatalogStore.from_settings(settings)


def lambda_handler(event, context):
    logger.info("Lambda invoked: %s", dumps(request_summary(event)))
    return api.get_products_list(event, store)
