"""
Error taxonomy for the application lifecycle.

Every failure the engine raises is one of a closed set of kinds. Each kind
maps to exactly one exception class and one HTTP status, so callers can
branch on ``exc.kind`` instead of inspecting messages.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of lifecycle error kinds."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    JOB_INACTIVE = "job_inactive"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    FORBIDDEN = "forbidden"
    STORAGE_FAILURE = "storage_failure"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.JOB_INACTIVE: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.STORAGE_FAILURE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.INTERNAL: 500,
}


class LifecycleError(Exception):
    """Base class for all lifecycle errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    @property
    def code(self) -> str:
        return self.kind.value.upper()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailedError(LifecycleError):
    """Malformed or disallowed input. Message is always safe to show."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class NotFoundError(LifecycleError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found",
            {"resource": resource, "id": str(identifier)},
        )
        self.resource = resource
        self.identifier = identifier


class JobInactiveError(LifecycleError):
    kind = ErrorKind.JOB_INACTIVE

    def __init__(self, job_id: Any):
        super().__init__("Job is not accepting applications", {"job_id": str(job_id)})
        self.job_id = job_id


class ConflictError(LifecycleError):
    kind = ErrorKind.CONFLICT


class DuplicateApplicationError(ConflictError):
    """A second submission for the same job/candidate pair."""

    def __init__(self, job_id: Any, candidate_id: Any):
        super().__init__(
            "You have already applied to this job",
            {
                "reason": "duplicate",
                "key": {"job_id": str(job_id), "candidate_id": str(candidate_id)},
                "retryable": False,
            },
        )
        self.job_id = job_id
        self.candidate_id = candidate_id


class StaleWriteError(ConflictError):
    """The aggregate changed between read and write."""

    def __init__(self, application_id: Any, expected_version: int):
        super().__init__(
            "Application was modified concurrently, please retry",
            {
                "reason": "stale_write",
                "application_id": str(application_id),
                "expected_version": expected_version,
                "retryable": True,
            },
        )
        self.application_id = application_id
        self.expected_version = expected_version


class InvalidTransitionError(LifecycleError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, current_status: str, requested_status: str):
        current = getattr(current_status, "value", current_status)
        requested = getattr(requested_status, "value", requested_status)
        super().__init__(
            f"Invalid status transition from {current} to {requested}",
            {"current_status": current, "requested_status": requested},
        )
        self.current_status = current
        self.requested_status = requested


class ForbiddenError(LifecycleError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "You don't have permission to perform this action", action: str | None = None):
        super().__init__(message, {"action": action} if action else None)
        self.action = action


class StorageFailureError(LifecycleError):
    """Attachment storage I/O failure. A missing object is not a failure."""

    kind = ErrorKind.STORAGE_FAILURE

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, {"url": url} if url else None)
        self.url = url


class OperationTimeoutError(LifecycleError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, stage: str):
        super().__init__(
            "The operation timed out before it was committed",
            {"stage": stage, "committed": False},
        )
        self.stage = stage


class InternalError(LifecycleError):
    kind = ErrorKind.INTERNAL
