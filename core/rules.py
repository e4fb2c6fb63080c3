"""
Immutable lifecycle rules loaded once per process.

The transition table, score weights and interview templates are read-only
mappings. The engine receives them as constructor arguments so tests can
inject alternatives without touching module state.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from core.domain import ApplicationStatus, InterviewType


S = ApplicationStatus

STATUS_TRANSITIONS: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = MappingProxyType({
    S.SUBMITTED: frozenset({S.UNDER_REVIEW, S.REJECTED, S.WITHDRAWN}),
    S.UNDER_REVIEW: frozenset({S.SHORTLISTED, S.REJECTED, S.WITHDRAWN}),
    S.SHORTLISTED: frozenset({S.INTERVIEWING, S.REJECTED, S.WITHDRAWN}),
    S.INTERVIEWING: frozenset({S.OFFER_PENDING, S.REJECTED, S.WITHDRAWN}),
    S.OFFER_PENDING: frozenset({S.HIRED, S.REJECTED, S.WITHDRAWN}),
    S.HIRED: frozenset(),
    S.REJECTED: frozenset(),
    S.WITHDRAWN: frozenset(),
})

TERMINAL_STATUSES = frozenset({S.HIRED, S.REJECTED, S.WITHDRAWN})

# Statuses whose history entry is not flagged as confirmed
UNCONFIRMED_STATUSES = frozenset({S.REJECTED, S.WITHDRAWN})


@dataclass(frozen=True)
class ScoreWeights:
    base: int = 50
    resume: int = 10
    cover_letter: int = 15
    cover_letter_min_length: int = 200
    status_bonus: int = 20
    bonus_statuses: frozenset[ApplicationStatus] = frozenset({
        S.SHORTLISTED, S.INTERVIEWING, S.OFFER_PENDING, S.HIRED,
    })
    per_interview: int = 5
    min_score: int = 0
    max_score: int = 100


DEFAULT_SCORE_WEIGHTS = ScoreWeights()

INTERVIEW_TEMPLATES: Mapping[InterviewType, str] = MappingProxyType({
    InterviewType.PHONE: "Standard phone screening questions",
    InterviewType.VIDEO: "Video conference link will be shared",
    InterviewType.ONSITE: "Bring your ID and portfolio",
    InterviewType.TECHNICAL_TEST: "Coding challenge will be provided",
})
DEFAULT_INTERVIEW_TEMPLATE = "General interview questions"

# Field limits
COVER_LETTER_MAX_LENGTH = 5000
NOTES_MAX_LENGTH = 2000
FEEDBACK_MAX_LENGTH = 2000
LOCATION_MAX_LENGTH = 200
ATTENDEE_ROLE_MAX_LENGTH = 50
MIN_ATTENDEES = 1
MAX_ATTENDEES = 5

ALLOWED_DOCUMENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})
