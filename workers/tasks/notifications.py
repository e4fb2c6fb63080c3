"""Notification delivery tasks."""

import logging

from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="workers.tasks.notifications.deliver_notification")
def deliver_notification(recipient_id: str, message: str) -> dict:
    """Hand a lifecycle notification to the outbound channel.

    The channel itself (email, in-app) consumes the structured log record;
    this task does not confirm delivery.

    Args:
        recipient_id: User, candidate or company identifier
        message: Human-readable notification text

    Returns:
        Dispatch status
    """
    logger.info(
        "notification_dispatched",
        extra={"extra_fields": {"recipient_id": recipient_id, "message": message}},
    )
    return {"status": "queued_for_channel", "recipient_id": recipient_id}
