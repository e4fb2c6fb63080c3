"""S3 attachment storage."""

import logging
import uuid
from os import environ
from pathlib import PurePosixPath
from typing import Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import StorageFailureError
from core.interfaces import StoredObject

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _get_credentials(region: Optional[str] = None) -> dict:
    """Lazily load AWS credentials to avoid import-time failures.

    Falls back to the default credential chain when keys are not set.
    """
    credentials = {"region_name": region or environ.get("AWS_REGION", "us-east-1")}
    access_key = environ.get("AWS_ACCESS_KEY_ID")
    secret_key = environ.get("AWS_SECRET_ACCESS_KEY")
    if access_key and secret_key:
        credentials["aws_access_key_id"] = access_key
        credentials["aws_secret_access_key"] = secret_key
    return credentials


class S3Storage:
    """S3 storage handler for async operations."""

    def __init__(self, bucket_name: Optional[str] = None, prefix: str = "documents", region: Optional[str] = None):
        """
        Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name (uses env var if not provided)
            prefix: Key prefix for stored attachments
            region: AWS region
        """
        self.bucket_name = bucket_name or environ.get("AWS_S3_BUCKET")
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and AWS_S3_BUCKET not set")

        self.prefix = prefix.strip("/")
        self.credentials = _get_credentials(region)

    def _url_for(self, key: str) -> str:
        return f"s3://{self.bucket_name}/{key}"

    def _key_for(self, url: str) -> str:
        marker = f"s3://{self.bucket_name}/"
        if url.startswith(marker):
            return url[len(marker):]
        return url.lstrip("/")

    async def store(self, data: bytes, name: str, content_type: str) -> StoredObject:
        """
        Upload file to S3 under a generated key.

        Args:
            data: File contents
            name: Original filename, used for its extension and metadata
            content_type: MIME type of the file

        Returns:
            Reference to the stored object
        """
        key = f"{self.prefix}/{uuid.uuid4()}{PurePosixPath(name).suffix.lower()}"
        session = aioboto3.Session(**self.credentials)
        try:
            async with session.client("s3") as client:
                await client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    Metadata={"original-name": name},
                )
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Failed to upload {name} to S3: {exc}")
            raise StorageFailureError(f"Failed to store {name}") from exc

        logger.info(f"Uploaded file to S3: {self.bucket_name}/{key}")
        return StoredObject(
            url=self._url_for(key),
            name=name,
            content_type=content_type,
            size=len(data),
        )

    async def delete(self, url: str) -> bool:
        """
        Delete file from S3.

        Args:
            url: Reference returned by ``store``

        Returns:
            True if deleted, False if the object did not exist
        """
        key = self._key_for(url)
        session = aioboto3.Session(**self.credentials)
        try:
            async with session.client("s3") as client:
                try:
                    await client.head_object(Bucket=self.bucket_name, Key=key)
                except ClientError as exc:
                    if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                        logger.debug(f"S3 object already absent: {self.bucket_name}/{key}")
                        return False
                    raise
                await client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageFailureError(f"Failed to delete {url}", url=url) from exc

        logger.info(f"Deleted file from S3: {self.bucket_name}/{key}")
        return True
