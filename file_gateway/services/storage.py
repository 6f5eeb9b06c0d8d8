import logging
from typing import Dict, Iterator, List, Optional
from urllib.parse import quote, unquote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from file_gateway.core.config import Settings
from file_gateway.core.errors import BackendError, NotFound
from file_gateway.models.file import ObjectRecord, StoredObject

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}
BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}
FILENAME_META = "filename"
STREAM_CHUNK_SIZE = 64 * 1024


def build_s3_client(settings: Settings):
    """Create the single S3 client shared by the whole process."""
    return boto3.client(
        "s3",
        endpoint_url=settings.endpoint_url,
        aws_access_key_id=settings.MINIO_ACCESS_KEY,
        aws_secret_access_key=settings.MINIO_SECRET_KEY,
        region_name=settings.MINIO_REGION,
    )


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _translate(exc: Exception, what: str) -> Exception:
    if isinstance(exc, ClientError) and _error_code(exc) in NOT_FOUND_CODES:
        return NotFound(f"{what} not found")
    return BackendError(f"Storage error on {what}: {exc}")


def encode_metadata(metadata: Dict[str, str]) -> Dict[str, str]:
    # User metadata travels as HTTP headers, so keep it ASCII
    return {name: quote(value, safe="") for name, value in metadata.items()}


def decode_metadata(metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {name: unquote(value) for name, value in (metadata or {}).items()}


class StorageService:
    """Thin adapter over an S3-compatible object store (MinIO)."""

    def __init__(self, client, region: str = "us-east-1"):
        self.client = client
        self.region = region

    def list_all(self, bucket_name: str, prefix: str = "") -> Iterator[ObjectRecord]:
        """Yield every object of a bucket lazily, in backend order.

        Each call opens a fresh listing; pages are fetched only as the
        caller advances.
        """
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield ObjectRecord(
                        key=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj["LastModified"],
                        etag=obj.get("ETag", "").strip('"'),
                    )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"bucket {bucket_name}") from e

    def describe(self, bucket_name: str, record: ObjectRecord) -> ObjectRecord:
        """Return a copy of a listed record with its user metadata attached."""
        try:
            head = self.client.head_object(Bucket=bucket_name, Key=record.key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"object {record.key}") from e
        return record.model_copy(update={"metadata": decode_metadata(head.get("Metadata"))})

    def put(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        try:
            self.client.put_object(
                Bucket=bucket_name,
                Key=object_name,
                Body=data,
                ContentLength=len(data),
                ContentType=content_type,
                Metadata=encode_metadata(metadata or {}),
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"bucket {bucket_name}") from e
        logger.info(
            "Stored %s/%s (%d bytes)", bucket_name, object_name, len(data),
            extra={"bucket": bucket_name, "key": object_name},
        )

    def get(self, bucket_name: str, object_name: str) -> StoredObject:
        try:
            response = self.client.get_object(Bucket=bucket_name, Key=object_name)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"object {object_name}") from e
        return StoredObject(
            body=response["Body"].iter_chunks(chunk_size=STREAM_CHUNK_SIZE),
            content_type=response.get("ContentType") or "application/octet-stream",
            content_length=response.get("ContentLength"),
            metadata=decode_metadata(response.get("Metadata")),
        )

    def delete(self, bucket_name: str, object_name: str) -> None:
        # S3 deletes of missing keys succeed silently, so check first
        try:
            self.client.head_object(Bucket=bucket_name, Key=object_name)
            self.client.delete_object(Bucket=bucket_name, Key=object_name)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"object {object_name}") from e
        logger.info("Deleted %s/%s", bucket_name, object_name, extra={"bucket": bucket_name, "key": object_name})

    def bucket_exists(self, bucket_name: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket_name)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise BackendError(f"Storage error on bucket {bucket_name}: {e}") from e
        except BotoCoreError as e:
            raise BackendError(f"Storage error on bucket {bucket_name}: {e}") from e

    def ensure_bucket(self, bucket_name: str) -> bool:
        """Create the bucket unless it exists. Returns True if it was created."""
        if self.bucket_exists(bucket_name):
            return False
        kwargs = {"Bucket": bucket_name}
        if self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as e:
            if _error_code(e) in BUCKET_EXISTS_CODES:
                # Someone else created it between our check and create
                return False
            raise BackendError(f"Failed to create bucket {bucket_name}: {e}") from e
        except BotoCoreError as e:
            raise BackendError(f"Failed to create bucket {bucket_name}: {e}") from e
        logger.info("Created bucket %s", bucket_name, extra={"bucket": bucket_name})
        return True

    def list_buckets(self) -> List[str]:
        try:
            response = self.client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"Failed to list buckets: {e}") from e
        return [bucket["Name"] for bucket in response.get("Buckets", [])]
