"""Attachment storage selection."""

from functools import lru_cache

from core.config import settings
from core.interfaces import AttachmentStorage
from core.storage.local import LocalStorage
from core.storage.s3 import S3Storage


@lru_cache
def get_storage() -> AttachmentStorage:
    """Return the configured storage backend (cached per process)."""
    if settings.storage_backend == "s3":
        return S3Storage(
            bucket_name=settings.aws_s3_bucket,
            prefix=settings.aws_s3_prefix,
            region=settings.aws_region,
        )
    return LocalStorage(
        base_path=settings.storage_base_path,
        public_prefix=settings.storage_public_prefix,
    )
