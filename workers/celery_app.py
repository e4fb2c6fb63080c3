"""Celery app factory."""

from celery import Celery

celery_app = Celery(
    "applications",
    include=["workers.tasks.storage", "workers.tasks.notifications"],
)
celery_app.config_from_object("workers.celery_config")
