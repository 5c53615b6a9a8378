import os
from dotenv import load_dotenv
from pathlib import Path

import boto3
from botocore.exceptions import ClientError

ROOT = Path(__file__).resolve().parents[1]

FUNCTIONS = [
    "get_products_list",
    "get_products_by_id",
    "create_product",
    "catalog_batch_process",
    "import_products_file",
    "import_file_parser",
    "basic_authorizer",
]


def empty_bucket(s3, bucket: str):
    # borra objetos y versiones si las hubiera
    try:
        paginator = s3.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=bucket):
            objs = []
            for v in page.get("Versions", []):
                objs.append({"Key": v["Key"], "VersionId": v["VersionId"]})
            for m in page.get("DeleteMarkers", []):
                objs.append({"Key": m["Key"], "VersionId": m["VersionId"]})
            if objs:
                s3.delete_objects(Bucket=bucket, Delete={"Objects": objs})
    except ClientError:
        # sin versionado o el bucket no existe
        pass

    try:
        paginator = s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket):
            objs = [{"Key": o["Key"]} for o in page.get("Contents", [])]
            if objs:
                s3.delete_objects(Bucket=bucket, Delete={"Objects": objs})
    except ClientError:
        pass


def delete_queue(sqs, name: str):
    try:
        url = sqs.get_queue_url(QueueName=name)["QueueUrl"]
        sqs.delete_queue(QueueUrl=url)
        print("Deleted queue:", name)
    except ClientError:
        pass


def main():
    load_dotenv(ROOT / ".env")

    region = os.getenv("AWS_REGION", "us-east-1")
    suffix = os.environ["SUFFIX"]
    tables = [os.getenv("PRODUCTS_TABLE_NAME", "products"), os.getenv("STOCK_TABLE_NAME", "stock")]

    import_bucket = f"import-service-bucket-{suffix}"
    api_name = f"product-service-api-{suffix}"
    topic_name = f"create-product-topic-{suffix}"

    session = boto3.session.Session(region_name=region)
    s3 = session.client("s3")
    ddb = session.client("dynamodb")
    sqs = session.client("sqs")
    lamb = session.client("lambda")
    apigw = session.client("apigatewayv2")
    sns = session.client("sns")

    print("== TEARDOWN ==")

    # 1) API Gateway, authorizer included
    try:
        for a in apigw.get_apis().get("Items", []):
            if a.get("Name") == api_name:
                apigw.delete_api(ApiId=a["ApiId"])
                print("Deleted API:", a["ApiId"])
    except ClientError as e:
        print("API delete error:", e)

    # 2) Event source mappings + Lambdas
    for fn in (f"{name}_{suffix}" for name in FUNCTIONS):
        try:
            mappings = lamb.list_event_source_mappings(FunctionName=fn).get("EventSourceMappings", [])
            for m in mappings:
                try:
                    lamb.delete_event_source_mapping(UUID=m["UUID"])
                    print("Deleted mapping:", m["UUID"])
                except ClientError:
                    pass

            lamb.delete_function(FunctionName=fn)
            print("Deleted Lambda:", fn)
        except ClientError:
            pass

    # 3) Queues
    delete_queue(sqs, f"catalog-items-queue-{suffix}")
    delete_queue(sqs, f"catalog-items-dlq-{suffix}")

    # 4) SNS topic
    try:
        for t in sns.list_topics().get("Topics", []):
            arn = t["TopicArn"]
            if arn.endswith(":" + topic_name):
                subs = sns.list_subscriptions_by_topic(TopicArn=arn).get("Subscriptions", [])
                for s in subs:
                    if s.get("SubscriptionArn") and s["SubscriptionArn"] != "PendingConfirmation":
                        try:
                            sns.unsubscribe(SubscriptionArn=s["SubscriptionArn"])
                        except ClientError:
                            pass
                sns.delete_topic(TopicArn=arn)
                print("Deleted SNS topic:", arn)
    except ClientError as e:
        print("SNS delete error:", e)

    # 5) DynamoDB tables
    for table_name in tables:
        try:
            ddb.delete_table(TableName=table_name)
            print("Deleted DynamoDB table:", table_name)
        except ClientError:
            pass

    # 6) Import bucket
    try:
        empty_bucket(s3, import_bucket)
        s3.delete_bucket(Bucket=import_bucket)
        print("Deleted bucket:", import_bucket)
    except ClientError:
        pass

    print("== DONE ==")


if __name__ == "__main__":
    main()
