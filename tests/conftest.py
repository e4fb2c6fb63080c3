"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET", "test-bucket")
os.environ.setdefault("JSON_LOGS", "true")

import pytest  # noqa: E402

from fakes import Harness  # noqa: E402


@pytest.fixture
def harness():
    """Lifecycle engine over in-memory collaborators; a resume is on file."""
    return Harness()


@pytest.fixture
def harness_without_resume():
    return Harness(resume_on_file=False)


@pytest.fixture
def cover_letter_250():
    """A cover letter just over the length that earns cover letter points."""
    return ("I build reliable backend services. " * 10)[:250]
