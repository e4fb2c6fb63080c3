"""
Fire-and-forget dispatch to Celery.

Both adapters publish a task and return. Publishing failures are logged and
dropped: a notification or a deferred cleanup must never fail the request
that produced it.
"""

import logging
from uuid import UUID

from kombu.exceptions import KombuError

from workers.tasks.notifications import deliver_notification
from workers.tasks.storage import purge_storage_objects

logger = logging.getLogger(__name__)


class CeleryNotifier:
    """Notifier that enqueues ``deliver_notification``."""

    def notify(self, recipient_id: UUID, message: str) -> None:
        try:
            deliver_notification.delay(str(recipient_id), message)
        except (KombuError, OSError) as exc:
            logger.warning(f"Could not enqueue notification for {recipient_id}: {exc}")


class CeleryCleanupScheduler:
    """Hands storage references to the deferred purge task."""

    def schedule(self, urls: list[str]) -> None:
        if not urls:
            return

        try:
            purge_storage_objects.delay(list(urls))
            logger.info(f"Scheduled deferred cleanup of {len(urls)} storage object(s)")
        except (KombuError, OSError) as exc:
            logger.error(f"Could not schedule cleanup for {urls}: {exc}")
