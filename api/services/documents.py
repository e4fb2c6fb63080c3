"""
Attachment lifecycle helpers.

- Shape checks for attach batches: resume and cover letter slots are strict,
  document items are lenient and skipped individually.
- Storage of incoming uploads, with compensating deletion if any store fails.
- Best-effort concurrent deletion of objects that are no longer referenced,
  with failures handed to the deferred cleanup task.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from api.schemas.applications import AttachmentBatch, FileReference
from core.domain import Document
from core.errors import OperationTimeoutError, StorageFailureError, ValidationFailedError
from core.interfaces import AttachmentStorage, CleanupScheduler, StoredObject
from core.rules import ALLOWED_DOCUMENT_TYPES
from core.utils.deadline import Deadline

logger = logging.getLogger(__name__)

REQUIRED_DOCUMENT_FIELDS = ("name", "url", "type", "size")
REQUIRED_SLOT_FIELDS = ("name", "url")


@dataclass(frozen=True)
class SkippedDocument:
    """A document item left out of an attach batch."""

    index: int
    name: str | None
    reason: str
    url: str | None = None


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def missing_fields(ref: FileReference, required: Iterable[str]) -> list[str]:
    missing = []
    for field_name in required:
        value = getattr(ref, field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field_name)
    return missing


def require_slot(ref: FileReference, slot: str) -> None:
    """Resume and cover letter must reference a stored object."""
    missing = missing_fields(ref, REQUIRED_SLOT_FIELDS)
    if missing:
        raise ValidationFailedError(
            f"Invalid {slot} file: missing {', '.join(missing)}",
            field=slot,
        )


def partition_documents(
    refs: list[FileReference], uploaded_at: datetime
) -> tuple[list[Document], list[SkippedDocument]]:
    """
    Split document items into accepted documents and skipped items.

    Args:
        refs: Items offered for attachment, in order
        uploaded_at: Timestamp to record on accepted documents

    Returns:
        Accepted documents and the items that failed shape validation
    """
    accepted: list[Document] = []
    skipped: list[SkippedDocument] = []
    for index, ref in enumerate(refs):
        missing = missing_fields(ref, REQUIRED_DOCUMENT_FIELDS)
        if missing or ref.size < 0:
            reason = f"missing {', '.join(missing)}" if missing else "invalid size"
            logger.warning(f"Skipping document #{index} ({ref.name!r}): {reason}")
            skipped.append(SkippedDocument(index=index, name=ref.name, reason=reason, url=ref.url))
            continue
        accepted.append(Document(
            name=ref.name,
            url=ref.url,
            type=ref.type,
            size=ref.size,
            uploaded_at=uploaded_at,
        ))
    return accepted, skipped


def check_upload(upload: UploadedFile, max_bytes: int) -> str | None:
    """Return why an upload is unacceptable, or None if it is fine."""
    if upload.content_type not in ALLOWED_DOCUMENT_TYPES:
        return f"unsupported file type {upload.content_type}"
    if upload.size == 0:
        return "empty file"
    if upload.size > max_bytes:
        return f"file exceeds {max_bytes // (1024 * 1024)}MB"
    return None


def _reference(stored: StoredObject) -> FileReference:
    return FileReference(
        name=stored.name,
        url=stored.url,
        type=stored.content_type,
        size=stored.size,
    )


async def store_uploads(
    storage: AttachmentStorage,
    resume: UploadedFile | None,
    cover_letter: UploadedFile | None,
    documents: list[UploadedFile],
    max_bytes: int,
) -> tuple[AttachmentBatch, list[SkippedDocument]]:
    """
    Validate and store incoming files, producing an attach batch.

    Resume and cover letter uploads must be valid; invalid supplementary
    documents are reported as skipped and never stored. If any store fails,
    objects already stored for this request are deleted and the failure is
    raised.

    Returns:
        The batch to attach and the documents rejected before storage
    """
    for slot, upload in (("resume", resume), ("cover_letter", cover_letter)):
        if upload is not None:
            problem = check_upload(upload, max_bytes)
            if problem:
                raise ValidationFailedError(f"Invalid {slot} file: {problem}", field=slot)

    rejected: list[SkippedDocument] = []
    pending: list[tuple[str, UploadedFile]] = []
    if resume is not None:
        pending.append(("resume", resume))
    if cover_letter is not None:
        pending.append(("cover_letter", cover_letter))
    for index, upload in enumerate(documents):
        problem = check_upload(upload, max_bytes)
        if problem:
            rejected.append(SkippedDocument(index=index, name=upload.name, reason=problem))
        else:
            pending.append(("documents", upload))

    if not pending:
        raise ValidationFailedError("No valid files to store")

    results = await asyncio.gather(
        *(storage.store(upload.data, upload.name, upload.content_type) for _, upload in pending),
        return_exceptions=True,
    )

    stored = [r for r in results if isinstance(r, StoredObject)]
    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        await asyncio.gather(
            *(storage.delete(obj.url) for obj in stored), return_exceptions=True
        )
        first = errors[0]
        if isinstance(first, StorageFailureError):
            raise first
        raise StorageFailureError("Failed to store uploaded files") from first

    batch = AttachmentBatch()
    for (slot, _), obj in zip(pending, results):
        if slot == "documents":
            batch.documents.append(_reference(obj))
        else:
            setattr(batch, slot, _reference(obj))
    return batch, rejected


class StorageJanitor:
    """Deletes unreferenced storage objects without failing the caller."""

    def __init__(self, storage: AttachmentStorage, scheduler: CleanupScheduler):
        self.storage = storage
        self.scheduler = scheduler

    async def delete_all(self, urls: list[str]) -> list[str]:
        """
        Delete every url concurrently.

        Objects that are already gone count as deleted.

        Returns:
            Urls whose deletion failed
        """
        if not urls:
            return []

        results = await asyncio.gather(
            *(self.storage.delete(url) for url in urls), return_exceptions=True
        )
        failed = []
        for url, result in zip(urls, results):
            if result is False:
                logger.info(f"Storage object already absent: {url}")
            elif isinstance(result, BaseException):
                logger.warning(f"Failed to delete storage object {url}: {result}")
                failed.append(url)
        return failed

    async def cleanup(self, urls: list[str], deadline: Deadline | None = None) -> list[str]:
        """
        Delete ``urls`` within the deadline and defer whatever is left.

        Returns:
            Urls handed to the deferred cleanup task
        """
        urls = list(dict.fromkeys(u for u in urls if u))
        if not urls:
            return []

        try:
            if deadline is None:
                failed = await self.delete_all(urls)
            else:
                failed = await deadline.run(self.delete_all(urls), "cleanup")
        except OperationTimeoutError:
            logger.warning(f"Cleanup of {len(urls)} storage object(s) ran out of time")
            failed = urls

        if failed:
            self.scheduler.schedule(failed)
        return failed
