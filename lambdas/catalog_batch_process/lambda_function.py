import logging

from product_service.batch import process_batch
from product_service.config import Settings, configure_logging
from product_service.notifications import SnsNotifier
from product_service.store import CatalogStore

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger()

store = CatalogStore.from_settings(settings)
notifier = SnsNotifier.from_settings(settings)


def lambda_handler(event, context):
    logger.info("Catalog batch process triggered with %d records", len(event.get("Records", [])))
    # Anything raised here fails the invocation and SQS redelivers the batch.
    return process_batch(
        event,
        store,
        notifier,
        strict_numbers=settings.strict_numbers,
        strict_notifications=settings.strict_notifications,
    )
