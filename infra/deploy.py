import os
import json
import time
import zipfile
from pathlib import Path

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
PACKAGE = "product_service"

API_TIMEOUT = 10
PARSER_TIMEOUT = 30
BATCH_TIMEOUT = 300
QUEUE_VISIBILITY = 360
MAX_RECEIVE_COUNT = 3
BATCH_SIZE = 5
BATCH_WINDOW_S = 5


def zip_lambda(src_dir: Path, out_zip: Path) -> None:
    out_zip.parent.mkdir(parents=True, exist_ok=True)
    if out_zip.exists():
        out_zip.unlink()
    with zipfile.ZipFile(out_zip, "w", zipfile.ZIP_DEFLATED) as z:
        for base, prefix in ((src_dir, ""), (ROOT / PACKAGE, PACKAGE + "/")):
            for p in base.rglob("*"):
                if p.is_file() and "__pycache__" not in p.parts:
                    arcname = prefix + str(p.relative_to(base)).replace("\\", "/")
                    z.write(p, arcname=arcname)


def ensure_bucket(s3, bucket_name: str, region: str) -> None:
    try:
        s3.head_bucket(Bucket=bucket_name)
        return
    except ClientError:
        pass

    kwargs = {"Bucket": bucket_name}
    if region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    s3.create_bucket(**kwargs)


def ensure_upload_cors(s3, bucket_name: str) -> None:
    # The browser PUTs the CSV straight to S3 with the signed URL.
    s3.put_bucket_cors(
        Bucket=bucket_name,
        CORSConfiguration={
            "CORSRules": [
                {
                    "AllowedMethods": ["GET", "PUT", "POST"],
                    "AllowedOrigins": ["*"],
                    "AllowedHeaders": ["*"],
                    "MaxAgeSeconds": 3000,
                }
            ]
        },
    )


def ensure_ddb_table(ddb, table_name: str, key: str) -> str:
    try:
        table = ddb.describe_table(TableName=table_name)["Table"]
    except ddb.exceptions.ResourceNotFoundException:
        ddb.create_table(
            TableName=table_name,
            BillingMode="PAY_PER_REQUEST",
            AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
            KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
        )
        ddb.get_waiter("table_exists").wait(TableName=table_name)
        table = ddb.describe_table(TableName=table_name)["Table"]

    return table["TableArn"]


def queue_arn(sqs, queue_url: str) -> str:
    attrs = sqs.get_queue_attributes(QueueUrl=queue_url, AttributeNames=["QueueArn"])
    return attrs["Attributes"]["QueueArn"]


def ensure_queues(sqs, queue_name: str, dlq_name: str):
    dlq_url = sqs.create_queue(QueueName=dlq_name)["QueueUrl"]
    dlq_arn = queue_arn(sqs, dlq_url)

    attributes = {
        "VisibilityTimeout": str(QUEUE_VISIBILITY),
        "RedrivePolicy": json.dumps({"deadLetterTargetArn": dlq_arn, "maxReceiveCount": str(MAX_RECEIVE_COUNT)}),
    }
    try:
        queue_url = sqs.create_queue(QueueName=queue_name, Attributes=attributes)["QueueUrl"]
    except ClientError as e:
        # Queue exists with other attributes: bring it in line.
        if e.response["Error"].get("Code") not in ("QueueAlreadyExists", "QueueNameExists"):
            raise
        queue_url = sqs.get_queue_url(QueueName=queue_name)["QueueUrl"]
        sqs.set_queue_attributes(QueueUrl=queue_url, Attributes=attributes)

    return queue_url, queue_arn(sqs, queue_url), dlq_url


def wait_lambda_ready(lambda_client, function_name: str, timeout_s: int = 120) -> None:
    t0 = time.time()
    while True:
        cfg = lambda_client.get_function_configuration(FunctionName=function_name)
        state = cfg.get("State", "Unknown")
        last_update = cfg.get("LastUpdateStatus", "Unknown")
        if state == "Active" and last_update in ("Successful", "Unknown"):
            return
        if time.time() - t0 > timeout_s:
            raise TimeoutError(
                f"Lambda {function_name} not ready after {timeout_s}s (State={state}, LastUpdateStatus={last_update})"
            )
        time.sleep(2)


def call_with_retries(fn, retries: int = 8, sleep_s: int = 2):
    last_exc = None
    for _ in range(retries):
        try:
            return fn()
        except ClientError as e:
            code = e.response["Error"].get("Code", "")
            if code in ("ResourceConflictException", "TooManyRequestsException", "InvalidParameterValueException"):
                last_exc = e
                time.sleep(sleep_s)
                continue
            raise
    raise last_exc


def ensure_lambda(lambda_client, name: str, role_arn: str, zip_path: Path, env_vars: dict, timeout: int) -> str:
    code_bytes = zip_path.read_bytes()
    handler = "lambda_function.lambda_handler"
    runtime = "python3.11"

    def _get_arn():
        return lambda_client.get_function(FunctionName=name)["Configuration"]["FunctionArn"]

    try:
        lambda_client.get_function(FunctionName=name)
        wait_lambda_ready(lambda_client, name)

        call_with_retries(lambda: lambda_client.update_function_code(FunctionName=name, ZipFile=code_bytes, Publish=True))
        wait_lambda_ready(lambda_client, name)

        call_with_retries(
            lambda: lambda_client.update_function_configuration(
                FunctionName=name,
                Role=role_arn,
                Handler=handler,
                Runtime=runtime,
                Timeout=timeout,
                MemorySize=256,
                Environment={"Variables": env_vars},
            )
        )
        wait_lambda_ready(lambda_client, name)
        return _get_arn()

    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    # A freshly created role may take a few seconds to become assumable.
    resp = call_with_retries(
        lambda: lambda_client.create_function(
            FunctionName=name,
            Role=role_arn,
            Runtime=runtime,
            Handler=handler,
            Code={"ZipFile": code_bytes},
            Timeout=timeout,
            MemorySize=256,
            Publish=True,
            Environment={"Variables": env_vars},
        )
    )
    wait_lambda_ready(lambda_client, name)
    return resp["FunctionArn"]


def add_invoke_permission(lambda_client, function_arn: str, stmt_id: str, principal: str, source_arn: str) -> None:
    try:
        lambda_client.add_permission(
            FunctionName=function_arn,
            StatementId=stmt_id,
            Action="lambda:InvokeFunction",
            Principal=principal,
            SourceArn=source_arn,
        )
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceConflictException":
            raise


def ensure_s3_trigger(s3, lambda_client, bucket: str, lambda_arn: str, prefix: str) -> None:
    add_invoke_permission(lambda_client, lambda_arn, f"s3invoke-{bucket}", "s3.amazonaws.com", f"arn:aws:s3:::{bucket}")

    s3.put_bucket_notification_configuration(
        Bucket=bucket,
        NotificationConfiguration={
            "LambdaFunctionConfigurations": [
                {
                    "LambdaFunctionArn": lambda_arn,
                    "Events": ["s3:ObjectCreated:*"],
                    "Filter": {
                        "Key": {
                            "FilterRules": [
                                {"Name": "prefix", "Value": prefix},
                                {"Name": "suffix", "Value": ".csv"},
                            ]
                        }
                    },
                }
            ]
        },
    )


def ensure_integration(apigw, api_id: str, lambda_arn: str) -> str:
    for it in apigw.get_integrations(ApiId=api_id).get("Items", []):
        if it.get("IntegrationUri") == lambda_arn:
            return it["IntegrationId"]

    return apigw.create_integration(
        ApiId=api_id,
        IntegrationType="AWS_PROXY",
        IntegrationUri=lambda_arn,
        PayloadFormatVersion="2.0",
    )["IntegrationId"]


def ensure_route(apigw, api_id: str, route_key: str, integration_id: str, authorizer_id: str | None = None) -> None:
    kwargs = {"Target": f"integrations/{integration_id}"}
    if authorizer_id:
        kwargs.update(AuthorizationType="CUSTOM", AuthorizerId=authorizer_id)
    else:
        kwargs["AuthorizationType"] = "NONE"

    for r in apigw.get_routes(ApiId=api_id).get("Items", []):
        if r["RouteKey"] == route_key:
            apigw.update_route(ApiId=api_id, RouteId=r["RouteId"], **kwargs)
            return
    apigw.create_route(ApiId=api_id, RouteKey=route_key, **kwargs)


def ensure_authorizer(apigw, api_id: str, name: str, lambda_arn: str, region: str) -> str:
    uri = f"arn:aws:apigateway:{region}:lambda:path/2015-03-31/functions/{lambda_arn}/invocations"
    for a in apigw.get_authorizers(ApiId=api_id).get("Items", []):
        if a["Name"] == name:
            return a["AuthorizerId"]

    return apigw.create_authorizer(
        ApiId=api_id,
        Name=name,
        AuthorizerType="REQUEST",
        AuthorizerUri=uri,
        AuthorizerPayloadFormatVersion="1.0",
        IdentitySource=["$request.header.Authorization"],
        AuthorizerResultTtlInSeconds=0,
    )["AuthorizerId"]


def ensure_http_api(apigw, lambda_client, api_name: str, routes: dict, authorizer_arn: str, region: str, account_id: str):
    """``routes`` maps a route key to ``(lambda_arn, protected)``."""
    api_id = None
    for a in apigw.get_apis().get("Items", []):
        if a["Name"] == api_name:
            api_id = a["ApiId"]
            break

    if not api_id:
        api_id = apigw.create_api(
            Name=api_name,
            ProtocolType="HTTP",
            CorsConfiguration={
                "AllowOrigins": ["*"],
                "AllowMethods": ["GET", "POST", "OPTIONS"],
                "AllowHeaders": ["*"],
            },
        )["ApiId"]

    authorizer_id = ensure_authorizer(apigw, api_id, "basic-authorizer", authorizer_arn, region)
    add_invoke_permission(
        lambda_client,
        authorizer_arn,
        f"apigw-auth-{api_id}",
        "apigateway.amazonaws.com",
        f"arn:aws:execute-api:{region}:{account_id}:{api_id}/authorizers/{authorizer_id}",
    )

    for route_key, (lambda_arn, protected) in routes.items():
        integration_id = ensure_integration(apigw, api_id, lambda_arn)
        ensure_route(apigw, api_id, route_key, integration_id, authorizer_id if protected else None)

    try:
        apigw.get_stage(ApiId=api_id, StageName="$default")
        apigw.update_stage(ApiId=api_id, StageName="$default", AutoDeploy=True)
    except ClientError:
        apigw.create_stage(ApiId=api_id, StageName="$default", AutoDeploy=True)

    for lambda_arn in {arn for arn, _ in routes.values()}:
        add_invoke_permission(
            lambda_client,
            lambda_arn,
            f"apigw-{api_id}",
            "apigateway.amazonaws.com",
            f"arn:aws:execute-api:{region}:{account_id}:{api_id}/*/*",
        )

    endpoint = apigw.get_api(ApiId=api_id)["ApiEndpoint"]
    return api_id, endpoint


def ensure_sns_topic_and_sub(sns, topic_name: str, email: str | None):
    topic_arn = sns.create_topic(Name=topic_name)["TopicArn"]

    if email:
        sns.subscribe(TopicArn=topic_arn, Protocol="email", Endpoint=email)

    return topic_arn


def ensure_event_source_mapping(lambda_client, function_arn: str, source_arn: str):
    mappings = lambda_client.list_event_source_mappings(FunctionName=function_arn).get("EventSourceMappings", [])
    for m in mappings:
        if m.get("EventSourceArn") == source_arn:
            return m["UUID"]

    resp = call_with_retries(
        lambda: lambda_client.create_event_source_mapping(
            EventSourceArn=source_arn,
            FunctionName=function_arn,
            BatchSize=BATCH_SIZE,
            MaximumBatchingWindowInSeconds=BATCH_WINDOW_S,
            Enabled=True,
        )
    )
    return resp["UUID"]


def main():
    load_dotenv(ROOT / ".env")

    region = os.getenv("AWS_REGION", "us-east-1")
    suffix = os.environ["SUFFIX"]
    products_table = os.getenv("PRODUCTS_TABLE_NAME", "products")
    stock_table = os.getenv("STOCK_TABLE_NAME", "stock")
    upload_prefix = os.getenv("UPLOAD_PREFIX", "uploaded/")
    log_level = os.getenv("LOG_LEVEL", "INFO")

    lambda_role_arn = os.getenv("LAMBDA_ROLE_ARN")
    if not lambda_role_arn:
        raise RuntimeError("Falta LAMBDA_ROLE_ARN en .env (usa un role existente tipo LabRole).")

    notify_email = os.getenv("NOTIFY_EMAIL") or None
    auth_users = os.getenv("AUTH_USERS", "")

    import_bucket = f"import-service-bucket-{suffix}"

    session = boto3.session.Session(region_name=region)
    sts = session.client("sts")
    account_id = sts.get_caller_identity()["Account"]

    s3 = session.client("s3")
    ddb = session.client("dynamodb")
    sqs = session.client("sqs")
    lamb = session.client("lambda")
    apigw = session.client("apigatewayv2")
    sns = session.client("sns")

    print(f"Region: {region}")
    print(f"Suffix: {suffix}")
    print(f"Account: {account_id}")
    print(f"Lambda Role: {lambda_role_arn}")

    ensure_ddb_table(ddb, products_table, "id")
    ensure_ddb_table(ddb, stock_table, "product_id")

    ensure_bucket(s3, import_bucket, region)
    ensure_upload_cors(s3, import_bucket)

    queue_url, queue_arn_, dlq_url = ensure_queues(sqs, f"catalog-items-queue-{suffix}", f"catalog-items-dlq-{suffix}")

    topic_arn = ensure_sns_topic_and_sub(sns, f"create-product-topic-{suffix}", notify_email)

    tables_env = {
        "PRODUCTS_TABLE_NAME": products_table,
        "STOCK_TABLE_NAME": stock_table,
        "LOG_LEVEL": log_level,
    }
    functions = {
        "get_products_list": (tables_env, API_TIMEOUT),
        "get_products_by_id": (tables_env, API_TIMEOUT),
        "create_product": (tables_env, API_TIMEOUT),
        "catalog_batch_process": (
            dict(
                tables_env,
                SNS_TOPIC_ARN=topic_arn,
                STRICT_NUMBERS=os.getenv("STRICT_NUMBERS", "false"),
                STRICT_NOTIFICATIONS=os.getenv("STRICT_NOTIFICATIONS", "false"),
            ),
            BATCH_TIMEOUT,
        ),
        "import_products_file": (
            {"BUCKET_NAME": import_bucket, "UPLOAD_PREFIX": upload_prefix, "LOG_LEVEL": log_level},
            API_TIMEOUT,
        ),
        "import_file_parser": (
            {"SQS_QUEUE_URL": queue_url, "UPLOAD_PREFIX": upload_prefix, "LOG_LEVEL": log_level},
            PARSER_TIMEOUT,
        ),
        "basic_authorizer": ({"AUTH_USERS": auth_users, "LOG_LEVEL": log_level}, API_TIMEOUT),
    }

    build_dir = ROOT / "infra" / ".build"
    build_dir.mkdir(exist_ok=True)

    arns = {}
    for fn, (env_vars, timeout) in functions.items():
        zip_path = build_dir / f"{fn}.zip"
        zip_lambda(ROOT / "lambdas" / fn, zip_path)
        arns[fn] = ensure_lambda(lamb, f"{fn}_{suffix}", lambda_role_arn, zip_path, env_vars, timeout)
        print("Lambda ready:", fn)

    ensure_s3_trigger(s3, lamb, import_bucket, arns["import_file_parser"], upload_prefix)

    mapping_uuid = ensure_event_source_mapping(lamb, arns["catalog_batch_process"], queue_arn_)

    routes = {
        "GET /products": (arns["get_products_list"], False),
        "GET /product/available": (arns["get_products_list"], False),
        "GET /products/{productId}": (arns["get_products_by_id"], False),
        "POST /products": (arns["create_product"], False),
        "GET /import": (arns["import_products_file"], True),
    }
    api_id, api_endpoint = ensure_http_api(
        apigw, lamb, f"product-service-api-{suffix}", routes, arns["basic_authorizer"], region, account_id
    )

    print("\n=== DEPLOY OK ===")
    print("Products table:", products_table)
    print("Stock table:   ", stock_table)
    print("Import bucket: ", import_bucket)
    print("Queue:         ", queue_url)
    print("Dead letters:  ", dlq_url)
    print("SNS topic:     ", topic_arn)
    print("SQS->Lambda mapping UUID:", mapping_uuid)
    print("API endpoint:  ", api_endpoint)
    print("Test list:     ", f"{api_endpoint}/products")
    print("Test import:   ", f"{api_endpoint}/import?name=products.csv")

    if notify_email:
        print("\nSNS email subscription:")
        print(" - Check your inbox and CONFIRM the subscription.")
    else:
        print("\nNOTIFY_EMAIL not set -> no email subscription created.")

    if not auth_users:
        print("\nAUTH_USERS not set -> every /import request will be denied.")


if __name__ == "__main__":
    main()
