"""Deferred attachment cleanup.

Storage deletions that fail or time out inside a request are handed to this
task so the request can report success once its aggregate write committed.
"""

import asyncio
import logging

from celery import Task

from core.errors import StorageFailureError
from core.storage.factory import get_storage
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _purge(urls: list[str]) -> tuple[list[str], list[str]]:
    storage = get_storage()
    results = await asyncio.gather(
        *(storage.delete(url) for url in urls), return_exceptions=True
    )
    removed: list[str] = []
    failed: list[str] = []
    for url, result in zip(urls, results):
        if isinstance(result, StorageFailureError):
            logger.warning(f"Deferred delete of {url} failed: {result}")
            failed.append(url)
        elif isinstance(result, BaseException):
            raise result
        else:
            removed.append(url)
    return removed, failed


@celery_app.task(name="workers.tasks.storage.purge_storage_objects", bind=True, max_retries=5)
def purge_storage_objects(self: Task, urls: list[str]) -> dict:
    """
    Delete orphaned attachment objects, retrying the ones that still fail.

    Args:
        urls: Storage references to delete. Missing objects count as removed.

    Returns:
        Summary of the pass
    """
    logger.info(f"Purging {len(urls)} storage object(s)")
    removed, failed = asyncio.run(_purge(urls))

    if failed:
        if self.request.retries >= self.max_retries:
            logger.error(f"Giving up on {len(failed)} storage object(s): {failed}")
            return {"status": "partial", "removed": removed, "failed": failed}
        # Only the failures are retried
        raise self.retry(
            args=(failed,),
            exc=StorageFailureError(f"{len(failed)} object(s) could not be deleted"),
            countdown=2 ** self.request.retries,
        )

    return {"status": "success", "removed": removed, "failed": []}
