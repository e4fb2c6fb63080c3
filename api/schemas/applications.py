"""Application lifecycle API schemas.

Request models forbid unknown fields, so anything outside a request's
allow-list is rejected instead of silently dropped.
"""

import re
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from api.schemas.common import TimestampMixin
from core.domain import ApplicationStatus, InterviewResult, InterviewType
from core.rules import (
    ATTENDEE_ROLE_MAX_LENGTH,
    COVER_LETTER_MAX_LENGTH,
    FEEDBACK_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    NOTES_MAX_LENGTH,
)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def _strip_text(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class StrictRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SubmitApplicationRequest(StrictRequest):
    """Candidate submission. Only these fields are accepted."""

    candidate_id: UUID
    cover_letter: Optional[str] = Field(None, max_length=COVER_LETTER_MAX_LENGTH)

    @field_validator("cover_letter", mode="before")
    @classmethod
    def sanitize_cover_letter(cls, v: Optional[str]) -> Optional[str]:
        """Drop script blocks and surrounding whitespace."""
        if isinstance(v, str):
            v = _SCRIPT_BLOCK.sub("", v)
        return _strip_text(v)


class StatusChangeRequest(StrictRequest):
    status: ApplicationStatus
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return _strip_text(v)


class WithdrawRequest(StrictRequest):
    reason: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v: Optional[str]) -> Optional[str]:
        return _strip_text(v)


class AttendeeInput(StrictRequest):
    user_id: UUID
    role: str = Field(default="Interviewer", min_length=1, max_length=ATTENDEE_ROLE_MAX_LENGTH)


class ScheduleInterviewRequest(StrictRequest):
    """Interview to append. Timing and attendee rules are enforced by the engine."""

    scheduled_at: datetime
    interview_type: InterviewType
    attendees: list[AttendeeInput] = Field(default_factory=list)
    location: str = Field(default="To be determined", max_length=LOCATION_MAX_LENGTH)
    feedback: Optional[str] = Field(None, max_length=FEEDBACK_MAX_LENGTH)
    result: InterviewResult = InterviewResult.PENDING


class FileReference(BaseModel):
    """A stored object offered for attachment.

    Fields are optional on purpose: document items are shape-checked by the
    engine and malformed ones are skipped rather than failing the batch.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = None


class AttachmentBatch(BaseModel):
    resume: Optional[FileReference] = None
    cover_letter: Optional[FileReference] = None
    documents: list[FileReference] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.resume is None and self.cover_letter is None and not self.documents

    @property
    def urls(self) -> list[str]:
        refs = [self.resume, self.cover_letter, *self.documents]
        return [ref.url for ref in refs if ref is not None and ref.url]


class DashboardQuery(StrictRequest):
    company_id: UUID
    status: Optional[ApplicationStatus] = None
    min_score: Optional[int] = Field(None, ge=0, le=100)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: Literal["created_at", "score"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    include_deleted: bool = False


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class StatusChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: ApplicationStatus
    changed_at: datetime
    changed_by: UUID
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    url: str
    type: str
    size: int
    uploaded_at: datetime


class AttendeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role: str


class InterviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheduled_at: datetime
    interview_type: InterviewType
    location: str
    attendees: list[AttendeeResponse]
    feedback: Optional[str] = None
    result: InterviewResult
    template: Optional[str] = None


class ScoringDetailsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_score: int
    resume_score: int
    cover_letter_score: int
    interview_score: int
    bonus_points: int


class ApplicationResponse(TimestampMixin):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    candidate_id: UUID
    company_id: UUID
    status: ApplicationStatus
    cover_letter: Optional[str] = None
    cover_letter_url: Optional[str] = None
    resume_url: Optional[str] = None
    documents: list[DocumentResponse] = Field(default_factory=list)
    score: int
    scoring_details: ScoringDetailsResponse
    interviews: list[InterviewResponse] = Field(default_factory=list)
    status_history: Optional[list[StatusChangeResponse]] = None
    is_archived: bool = False
    deleted_at: Optional[datetime] = None
    version: int

    @classmethod
    def build(cls, application, include_history: bool = True, **extra) -> "ApplicationResponse":
        data = ApplicationResponse.model_validate(application).model_dump()
        if not include_history:
            data["status_history"] = None
        data.update(extra)
        return cls.model_validate(data)


class SubmissionResponse(ApplicationResponse):
    next_steps: list[str] = Field(default_factory=list)


class SkippedDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    name: Optional[str] = None
    reason: str


class AttachmentResponse(ApplicationResponse):
    accepted: int = 0
    skipped: list[SkippedDocumentResponse] = Field(default_factory=list)


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: UUID
    job_id: UUID
    new_status: ApplicationStatus
    message: str = "Application withdrawn successfully"


class ScoreResponse(BaseModel):
    application_id: UUID
    score: int
    scoring_details: ScoringDetailsResponse
