import logging

import boto3

from product_service.config import Settings, boto_config, configure_logging
from product_service.importer import signed_upload_url
from product_service.responses import dumps, request_summary

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger()

BUCKET_NAME = settings.require("bucket_name")

s3 = boto3.client("s3", region_name=settings.region, config=boto_config())


def lambda_handler(event, context):
    logger.info("Import products file request: %s", dumps(request_summary(event)))
    return signed_upload_url(
        event,
        s3,
        BUCKET_NAME,
        prefix=settings.upload_prefix,
        expires=settings.signed_url_expires,
    )
