"""
Application aggregate and the value types embedded in it.

The aggregate is a plain dataclass graph so that the lifecycle engine can be
exercised without a database. ``database.store`` maps it to and from rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4


class ApplicationStatus(str, PyEnum):
    """Stages an application moves through."""

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    INTERVIEWING = "interviewing"
    OFFER_PENDING = "offer_pending"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class InterviewType(str, PyEnum):
    PHONE = "phone"
    VIDEO = "video"
    ONSITE = "onsite"
    TECHNICAL_TEST = "technical_test"


class InterviewResult(str, PyEnum):
    PASS = "pass"
    FAIL = "fail"
    PENDING = "pending"


class ActorRole(str, PyEnum):
    CANDIDATE = "candidate"
    RECRUITER = "recruiter"
    HIRING_MANAGER = "hiring_manager"
    COMPANY_ADMIN = "company_admin"
    ADMIN = "admin"


@dataclass(frozen=True)
class StatusChange:
    """One entry of the audit trail. Never mutated once appended."""

    status: ApplicationStatus
    changed_at: datetime
    changed_by: UUID
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Document:
    name: str
    url: str
    type: str
    size: int
    uploaded_at: datetime


@dataclass(frozen=True)
class Attendee:
    user_id: UUID
    role: str = "Interviewer"


@dataclass
class Interview:
    scheduled_at: datetime
    interview_type: InterviewType
    attendees: list[Attendee]
    location: str = "To be determined"
    feedback: str | None = None
    result: InterviewResult = InterviewResult.PENDING
    template: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class ScoringDetails:
    """Score components. The score is always ``min(100, total)``."""

    base_score: int = 0
    resume_score: int = 0
    cover_letter_score: int = 0
    interview_score: int = 0
    bonus_points: int = 0

    @property
    def total(self) -> int:
        return (
            self.base_score
            + self.resume_score
            + self.cover_letter_score
            + self.interview_score
            + self.bonus_points
        )


@dataclass
class Application:
    """Aggregate root: a candidate's application to a job."""

    job_id: UUID
    candidate_id: UUID
    company_id: UUID
    created_at: datetime
    updated_at: datetime
    id: UUID = field(default_factory=uuid4)
    cover_letter: str | None = None
    cover_letter_url: str | None = None
    resume_url: str | None = None
    documents: list[Document] = field(default_factory=list)
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    status_history: list[StatusChange] = field(default_factory=list)
    score: int = 0
    scoring_details: ScoringDetails = field(default_factory=ScoringDetails)
    interviews: list[Interview] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    is_archived: bool = False
    deleted_at: datetime | None = None
    version: int = 1

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None or self.is_archived

    def storage_urls(self) -> list[str]:
        """Every storage object the aggregate references."""
        urls = [doc.url for doc in self.documents]
        if self.cover_letter_url:
            urls.append(self.cover_letter_url)
        if self.resume_url:
            urls.append(self.resume_url)
        return urls


@dataclass(frozen=True)
class JobRef:
    id: UUID
    company_id: UUID
    title: str
    is_active: bool


@dataclass(frozen=True)
class CandidateRef:
    id: UUID
    user_id: UUID
    resume_present: bool


@dataclass(frozen=True)
class Actor:
    """Caller identity as resolved by the authentication layer."""

    id: UUID
    role: ActorRole
    company_id: UUID | None = None
    candidate_id: UUID | None = None


@dataclass(frozen=True)
class Provenance:
    ip_address: str | None = None
    user_agent: str | None = None
