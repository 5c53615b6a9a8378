import logging

import boto3
from botocore.exceptions import ClientError

from .config import boto_config
from .errors import NotificationError
from .responses import dumps

logger = logging.getLogger(__name__)

MAX_SUBJECT = 100


class SnsNotifier:
    def __init__(self, client, topic_arn: str):
        self.client = client
        self.topic_arn = topic_arn

    @classmethod
    def from_settings(cls, settings, session=None):
        session = session or boto3.session.Session(region_name=settings.region)
        return cls(session.client("sns", config=boto_config()), settings.require("topic_arn"))

    def publish(self, subject: str, message) -> None:
        try:
            self.client.publish(
                TopicArn=self.topic_arn,
                Subject=subject[:MAX_SUBJECT],
                Message=dumps(message, indent=2, ensure_ascii=False),
            )
        except ClientError as e:
            raise NotificationError(f"SNS publish failed: {e}") from e

    def notify_products_created(self, products: list) -> None:
        message = {
            "productsCreated": len(products),
            "products": [
                {"id": p["id"], "title": p["title"], "price": p["price"]} for p in products
            ],
        }
        self.publish(f"{len(products)} New Product(s) Created", message)
        logger.info("SNS notification sent for %d products", len(products))
