import logging

import boto3

from product_service.config import Settings, boto_config, configure_logging
from product_service.importer import parse_uploaded_files
from product_service.responses import dumps

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger()

QUEUE_URL = settings.require("queue_url")

s3 = boto3.client("s3", region_name=settings.region, config=boto_config())
sqs = boto3.client("sqs", region_name=settings.region, config=boto_config())


def lambda_handler(event, context):
    logger.info("Import file parser triggered: %s", dumps(event))
    return parse_uploaded_files(event, s3, sqs, QUEUE_URL, prefix=settings.upload_prefix)
