"""CSV import: presigned upload URLs and the S3-triggered parser that feeds
each row into the catalog items queue."""
import csv
import io
import logging
import posixpath
from urllib.parse import unquote_plus

from botocore.exceptions import ClientError

from .errors import BadRequest, QueueError
from .responses import READ_METHODS, dumps, error_response, http_method, json_response, preflight

logger = logging.getLogger(__name__)


def upload_key(name: str, prefix: str) -> str:
    base = posixpath.basename(name.replace("\\", "/")).strip()
    if not base:
        raise BadRequest("Missing required parameter: name")
    return f"{prefix}{base}"


def signed_upload_url(event, s3, bucket: str, prefix: str = "uploaded/", expires: int = 900):
    """GET /import?name=products.csv -> {"signedUrl": ...}"""
    if http_method(event) == "OPTIONS":
        return preflight(READ_METHODS)

    name = (event.get("queryStringParameters") or {}).get("name")
    try:
        if not name:
            raise BadRequest("Missing required parameter: name")
        key = upload_key(name, prefix)
    except BadRequest as e:
        return error_response(400, e.message)

    try:
        url = s3.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": bucket, "Key": key, "ContentType": "text/csv"},
            ExpiresIn=expires,
        )
    except ClientError:
        logger.exception("Could not sign upload URL for %s", key)
        return error_response(500, "Internal Server Error")

    logger.info("Generated signed URL for %s", key)
    return json_response(200, {"signedUrl": url})


def clean_row(row: dict) -> dict:
    cleaned = {}
    for k, v in row.items():
        if k is None:
            # Extra cells with no header.
            continue
        name = k.strip().lower()
        value = v.strip() if isinstance(v, str) else v
        if name and value not in (None, ""):
            cleaned[name] = value
    return cleaned


def read_rows(body: str):
    reader = csv.DictReader(io.StringIO(body))
    for row in reader:
        cleaned = clean_row(row)
        if cleaned:
            yield cleaned


def send_row(sqs, queue_url: str, row: dict, source: str, number: int) -> None:
    try:
        sqs.send_message(
            QueueUrl=queue_url,
            MessageBody=dumps(row, ensure_ascii=False),
            MessageAttributes={
                "sourceFile": {"DataType": "String", "StringValue": source},
                "recordNumber": {"DataType": "Number", "StringValue": str(number)},
            },
        )
    except ClientError as e:
        raise QueueError(f"send_message failed for {source}#{number}") from e


def _wanted(key: str, prefix: str) -> bool:
    if not key.startswith(prefix):
        logger.info("Skipping %s - not under %s", key, prefix)
        return False
    if not key.lower().endswith(".csv"):
        logger.info("Skipping %s - not a CSV file", key)
        return False
    return True


def parse_uploaded_files(event, s3, sqs, queue_url: str, prefix: str = "uploaded/") -> dict:
    files = 0
    sent = 0
    try:
        for r in event.get("Records", []):
            bucket = r["s3"]["bucket"]["name"]
            key = unquote_plus(r["s3"]["object"]["key"])
            if not _wanted(key, prefix):
                continue

            logger.info("Processing s3://%s/%s", bucket, key)
            obj = s3.get_object(Bucket=bucket, Key=key)
            body = obj["Body"].read().decode("utf-8-sig", errors="replace")

            rows = 0
            file_sent = 0
            for rows, row in enumerate(read_rows(body), start=1):
                try:
                    send_row(sqs, queue_url, row, key, rows)
                except QueueError:
                    logger.exception("Record %d of %s was not queued", rows, key)
                    continue
                file_sent += 1

            files += 1
            sent += file_sent
            logger.info("Finished %s. Total records: %d, sent to SQS: %d", key, rows, file_sent)
    except (ClientError, KeyError, csv.Error) as e:
        # No re-raise: S3 would retry the same broken upload over and over.
        logger.exception("Error processing uploaded files")
        return {
            "statusCode": 500,
            "body": dumps({"message": "Error processing files", "error": type(e).__name__}),
        }

    return {
        "statusCode": 200,
        "body": dumps({"message": "Files processed and sent to SQS", "files": files, "sent": sent}),
    }
