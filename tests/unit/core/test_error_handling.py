"""
Tests for error handling middleware and lifecycle error rendering.
"""

import json
import uuid

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from core.errors import (
    DuplicateApplicationError,
    ErrorKind,
    ForbiddenError,
    HTTP_STATUS_BY_KIND,
    InternalError,
    InvalidTransitionError,
    JobInactiveError,
    NotFoundError,
    OperationTimeoutError,
    StaleWriteError,
    StorageFailureError,
    ValidationFailedError,
)
from core.domain import ApplicationStatus
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    get_safe_error_details,
    sanitize_error_message,
    setup_error_handlers,
)


class TestSensitiveDataSanitization:
    """Secrets never reach an error body or a log line."""

    @pytest.mark.parametrize("sensitive_input", [
        'password="secret123"',
        'token="Bearer abc123xyz"',
        'api_key="sk_live_12345"',
        'client_secret:abc123',
        'authorization: Bearer token123',
        'could not connect to postgresql+asyncpg://app:hunter2@db:5432/recruiting',
        'SSN: 123-45-6789',
    ])
    def test_sensitive_patterns_redacted(self, sensitive_input):
        sanitized = sanitize_error_message(sensitive_input)
        assert "[REDACTED]" in sanitized

    @pytest.mark.parametrize("safe_input", [
        'Application not found',
        'Invalid status transition from submitted to interviewing',
        'count=12345',
    ])
    def test_safe_messages_untouched(self, safe_input):
        assert sanitize_error_message(safe_input) == safe_input

    def test_multiple_sensitive_fields_in_one_message(self):
        message = 'Error: password="secret" and token="abc123" and api_key="xyz789"'
        sanitized = sanitize_error_message(message)

        assert "abc123" not in sanitized
        assert "xyz789" not in sanitized
        assert sanitized.count("[REDACTED]") == 3

    def test_database_url_credentials_removed(self):
        sanitized = sanitize_error_message("postgresql://app:hunter2@db/recruiting refused")
        assert "hunter2" not in sanitized

    def test_empty_string(self):
        assert sanitize_error_message("") == ""


class TestSafeErrorDetails:
    def test_basic_exception_details(self):
        details = get_safe_error_details(ValueError("Test error message"))

        assert details["type"] == "ValueError"
        assert details["message"] == "Test error message"
        assert "traceback" not in details

    def test_debug_mode_includes_traceback(self):
        details = get_safe_error_details(ValueError("Test error"), include_details=True)
        assert isinstance(details["traceback"], str)

    def test_details_are_sanitized(self):
        details = get_safe_error_details(ValueError("Error with password=secret123"))
        assert "secret123" not in details["message"]


class TestLifecycleErrors:
    """Each error kind has one exception class and one HTTP status."""

    @pytest.mark.parametrize("exc,kind,status_code", [
        (ValidationFailedError("bad"), ErrorKind.VALIDATION, 400),
        (NotFoundError("Application", "x"), ErrorKind.NOT_FOUND, 404),
        (JobInactiveError("j"), ErrorKind.JOB_INACTIVE, 404),
        (DuplicateApplicationError("j", "c"), ErrorKind.CONFLICT, 409),
        (StaleWriteError("a", 3), ErrorKind.CONFLICT, 409),
        (InvalidTransitionError("submitted", "hired"), ErrorKind.INVALID_TRANSITION, 400),
        (ForbiddenError(), ErrorKind.FORBIDDEN, 403),
        (StorageFailureError("disk"), ErrorKind.STORAGE_FAILURE, 502),
        (OperationTimeoutError("load"), ErrorKind.TIMEOUT, 504),
        (InternalError("boom"), ErrorKind.INTERNAL, 500),
    ])
    def test_kind_and_status(self, exc, kind, status_code):
        assert exc.kind == kind
        assert exc.status_code == status_code
        assert HTTP_STATUS_BY_KIND[kind] == status_code

    def test_every_kind_has_a_status(self):
        assert set(HTTP_STATUS_BY_KIND) == set(ErrorKind)

    def test_invalid_transition_details(self):
        exc = InvalidTransitionError(ApplicationStatus.SUBMITTED, ApplicationStatus.INTERVIEWING)

        assert exc.details["current_status"] == "submitted"
        assert exc.details["requested_status"] == "interviewing"

    def test_duplicate_is_not_retryable_but_stale_write_is(self):
        assert DuplicateApplicationError("j", "c").details["retryable"] is False
        assert StaleWriteError("a", 1).details["retryable"] is True

    def test_timeout_reports_stage_and_no_commit(self):
        exc = OperationTimeoutError("commit")
        assert exc.details == {"stage": "commit", "committed": False}


class TestErrorHandlingMiddleware:
    """Errors rendered through the installed handlers and the ASGI fallback."""

    @pytest.fixture
    def app(self):
        app = FastAPI()
        setup_error_handlers(app)
        app.add_middleware(ErrorHandlingMiddleware, debug=False)

        class Payload(BaseModel):
            model_config = ConfigDict(extra="forbid")
            name: str

        @app.get("/success")
        async def success():
            return {"message": "success"}

        @app.post("/validated")
        async def validated(payload: Payload):
            return payload

        @app.get("/missing")
        async def missing():
            raise NotFoundError("Application", uuid.UUID(int=1))

        @app.get("/transition")
        async def transition():
            raise InvalidTransitionError(ApplicationStatus.SUBMITTED, ApplicationStatus.HIRED)

        @app.get("/duplicate")
        async def duplicate():
            raise DuplicateApplicationError(uuid.UUID(int=2), uuid.UUID(int=3))

        @app.get("/storage")
        async def storage():
            raise StorageFailureError("Failed to delete s3://bucket/x")

        @app.get("/http-error")
        async def http_error():
            raise HTTPException(status_code=401, detail="Unauthorized with token=abc123")

        @app.get("/database-operational-error")
        async def db_operational_error():
            raise OperationalError("connection lost", None, None)

        @app.get("/database-error")
        async def db_error():
            raise SQLAlchemyError("syntax error near password=hunter2")

        @app.get("/timeout-error")
        async def timeout_err():
            raise TimeoutError("Request timed out")

        @app.get("/generic-error")
        async def generic_err():
            raise Exception("Unexpected error with api_key=secret")

        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app, raise_server_exceptions=False)

    def test_successful_request(self, client):
        response = client.get("/success")
        assert response.status_code == 200
        assert response.json() == {"message": "success"}

    def test_not_found(self, client):
        response = client.get("/missing")
        assert response.status_code == 404

        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert error["kind"] == "not_found"
        assert error["path"] == "/missing"
        assert error["method"] == "GET"

    def test_invalid_transition_carries_both_states(self, client):
        response = client.get("/transition")
        assert response.status_code == 400

        error = response.json()["error"]
        assert error["kind"] == "invalid_transition"
        assert error["details"]["current_status"] == "submitted"
        assert error["details"]["requested_status"] == "hired"

    def test_duplicate_is_conflict(self, client):
        response = client.get("/duplicate")
        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "conflict"

    def test_storage_failure_is_bad_gateway(self, client):
        response = client.get("/storage")
        assert response.status_code == 502
        assert response.json()["error"]["kind"] == "storage_failure"

    def test_request_validation_is_400(self, client):
        """Unknown fields in a strict request body are rejected with 400."""
        response = client.post("/validated", json={"name": "x", "status": "hired"})
        assert response.status_code == 400

        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["kind"] == "validation_error"
        assert any(item["field"].endswith("status") for item in error["details"])

    def test_http_exception_handling(self, client):
        response = client.get("/http-error")
        assert response.status_code == 401

        data = response.json()
        assert data["error"]["code"] == "HTTP_EXCEPTION"
        assert "abc123" not in json.dumps(data)

    def test_database_operational_error(self, client):
        response = client.get("/database-operational-error")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_database_error_hides_statement(self, client):
        response = client.get("/database-error")
        assert response.status_code == 500
        assert "hunter2" not in response.text

    def test_timeout_error(self, client):
        response = client.get("/timeout-error")
        assert response.status_code == 504
        assert response.json()["error"]["code"] == "TIMEOUT"

    def test_generic_error_handling(self, client):
        response = client.get("/generic-error")
        assert response.status_code == 500

        data = response.json()
        assert data["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "secret" not in json.dumps(data)

    def test_request_id_echoed_on_fallback_errors(self, client):
        response = client.get("/generic-error", headers={"X-Request-ID": "req-123"})
        assert response.json()["error"]["request_id"] == "req-123"
