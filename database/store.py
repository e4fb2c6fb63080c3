"""
SQL persistence for the Application aggregate.

Each method opens its own session: the store is the only arbiter of
consistency and nothing is cached between calls.

- Uniqueness of (job_id, candidate_id) comes from the table's unique
  constraint.
- Concurrent writers are serialised by a compare-and-set on ``version``.
"""

import logging
import uuid
from dataclasses import asdict, replace
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain import (
    Application,
    ApplicationStatus,
    Attendee,
    Document,
    Interview,
    InterviewResult,
    InterviewType,
    ScoringDetails,
    StatusChange,
)
from core.errors import DuplicateApplicationError, StaleWriteError
from core.interfaces import ApplicationFilter, PageRequest
from core.utils.datetime import ensure_utc, from_iso, to_iso
from database.engine import AsyncSessionLocal
from database.models import candidates, jobs  # noqa: F401  (foreign key targets)
from database.models.applications import ApplicationRecord

logger = logging.getLogger(__name__)


# ==================== Serialization ===================== #

def _history_to_json(entry: StatusChange) -> dict[str, Any]:
    return {
        "status": entry.status.value,
        "changed_at": to_iso(entry.changed_at),
        "changed_by": str(entry.changed_by),
        "notes": entry.notes,
        "metadata": entry.metadata,
    }


def _history_from_json(data: dict[str, Any]) -> StatusChange:
    return StatusChange(
        status=ApplicationStatus(data["status"]),
        changed_at=from_iso(data["changed_at"]),
        changed_by=uuid.UUID(data["changed_by"]),
        notes=data.get("notes"),
        metadata=data.get("metadata") or {},
    )


def _document_to_json(doc: Document) -> dict[str, Any]:
    return {
        "name": doc.name,
        "url": doc.url,
        "type": doc.type,
        "size": doc.size,
        "uploaded_at": to_iso(doc.uploaded_at),
    }


def _document_from_json(data: dict[str, Any]) -> Document:
    return Document(
        name=data["name"],
        url=data["url"],
        type=data["type"],
        size=int(data["size"]),
        uploaded_at=from_iso(data["uploaded_at"]),
    )


def _interview_to_json(interview: Interview) -> dict[str, Any]:
    return {
        "id": str(interview.id),
        "scheduled_at": to_iso(interview.scheduled_at),
        "interview_type": interview.interview_type.value,
        "location": interview.location,
        "attendees": [
            {"user_id": str(a.user_id), "role": a.role} for a in interview.attendees
        ],
        "feedback": interview.feedback,
        "result": interview.result.value,
        "template": interview.template,
    }


def _interview_from_json(data: dict[str, Any]) -> Interview:
    return Interview(
        id=uuid.UUID(data["id"]),
        scheduled_at=from_iso(data["scheduled_at"]),
        interview_type=InterviewType(data["interview_type"]),
        location=data.get("location") or "To be determined",
        attendees=[
            Attendee(user_id=uuid.UUID(a["user_id"]), role=a.get("role") or "Interviewer")
            for a in data.get("attendees", [])
        ],
        feedback=data.get("feedback"),
        result=InterviewResult(data.get("result", InterviewResult.PENDING.value)),
        template=data.get("template"),
    )


def _mutable_values(application: Application) -> dict[str, Any]:
    """Column values that may change after creation."""
    return {
        "cover_letter": application.cover_letter,
        "cover_letter_url": application.cover_letter_url,
        "resume_url": application.resume_url,
        "documents": [_document_to_json(d) for d in application.documents],
        "status": application.status.value,
        "status_history": [_history_to_json(h) for h in application.status_history],
        "score": application.score,
        "scoring_details": asdict(application.scoring_details),
        "interviews": [_interview_to_json(i) for i in application.interviews],
        "is_archived": application.is_archived,
        "deleted_at": application.deleted_at,
        "updated_at": application.updated_at,
    }


def to_record(application: Application) -> ApplicationRecord:
    return ApplicationRecord(
        id=application.id,
        job_id=application.job_id,
        candidate_id=application.candidate_id,
        company_id=application.company_id,
        submission_metadata=application.metadata,
        created_at=application.created_at,
        version=application.version,
        **_mutable_values(application),
    )


def from_record(record: ApplicationRecord) -> Application:
    return Application(
        id=record.id,
        job_id=record.job_id,
        candidate_id=record.candidate_id,
        company_id=record.company_id,
        cover_letter=record.cover_letter,
        cover_letter_url=record.cover_letter_url,
        resume_url=record.resume_url,
        documents=[_document_from_json(d) for d in record.documents or []],
        status=ApplicationStatus(record.status),
        status_history=[_history_from_json(h) for h in record.status_history or []],
        score=record.score,
        scoring_details=ScoringDetails(**(record.scoring_details or {})),
        interviews=[_interview_from_json(i) for i in record.interviews or []],
        metadata=dict(record.submission_metadata or {}),
        is_archived=record.is_archived,
        deleted_at=ensure_utc(record.deleted_at) if record.deleted_at else None,
        version=record.version,
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
    )


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return (
        "uq_applications_job_candidate" in message
        or "unique constraint" in message
        or "duplicate key" in message
    )


# ==================== Store ===================== #

class SQLApplicationStore:
    """Application store backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get(self, application_id: uuid.UUID, include_deleted: bool = False) -> Application | None:
        query = select(ApplicationRecord).where(ApplicationRecord.id == application_id)
        if not include_deleted:
            query = query.where(
                ApplicationRecord.deleted_at.is_(None),
                ApplicationRecord.is_archived.is_(False),
            )

        async with self.session_factory() as session:
            record = (await session.execute(query)).scalar_one_or_none()
            return from_record(record) if record else None

    async def add(self, application: Application) -> Application:
        """
        Insert a new application.

        Raises:
            DuplicateApplicationError: The candidate already applied to the job
        """
        application = replace(application, version=1)
        async with self.session_factory() as session:
            session.add(to_record(application))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if _is_unique_violation(exc):
                    logger.info(
                        f"Duplicate application for job {application.job_id} "
                        f"and candidate {application.candidate_id}"
                    )
                    raise DuplicateApplicationError(application.job_id, application.candidate_id) from exc
                raise
        return application

    async def save(self, application: Application) -> Application:
        """
        Write the aggregate if nobody else has since it was read.

        Raises:
            StaleWriteError: ``application.version`` is no longer current
        """
        statement = (
            update(ApplicationRecord)
            .where(
                ApplicationRecord.id == application.id,
                ApplicationRecord.version == application.version,
            )
            .values(version=application.version + 1, **_mutable_values(application))
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(statement)
            if result.rowcount != 1:
                await session.rollback()
                raise StaleWriteError(application.id, application.version)
            await session.commit()

        return replace(application, version=application.version + 1)

    async def delete(self, application_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(ApplicationRecord)
                .where(ApplicationRecord.id == application_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0

    async def search(
        self, filters: ApplicationFilter, page: PageRequest
    ) -> tuple[list[Application], int]:
        """
        Return one page and the total for the same filter.

        Args:
            filters: Shared filter for both queries
            page: Page, size and ordering

        Returns:
            Applications on the page and the filtered total
        """
        conditions = []
        if filters.company_id is not None:
            conditions.append(ApplicationRecord.company_id == filters.company_id)
        if filters.candidate_id is not None:
            conditions.append(ApplicationRecord.candidate_id == filters.candidate_id)
        if filters.job_id is not None:
            conditions.append(ApplicationRecord.job_id == filters.job_id)
        if filters.status is not None:
            conditions.append(ApplicationRecord.status == filters.status.value)
        if filters.min_score is not None:
            conditions.append(ApplicationRecord.score >= filters.min_score)
        if not filters.include_deleted:
            conditions.append(ApplicationRecord.deleted_at.is_(None))
            conditions.append(ApplicationRecord.is_archived.is_(False))

        sort_column = ApplicationRecord.score if page.sort_by == "score" else ApplicationRecord.created_at
        ordering = sort_column.asc() if page.sort_order == "asc" else sort_column.desc()

        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(ApplicationRecord).where(*conditions)
            )
            records = (
                await session.execute(
                    select(ApplicationRecord)
                    .where(*conditions)
                    .order_by(ordering, ApplicationRecord.id)
                    .offset(page.offset)
                    .limit(page.limit)
                )
            ).scalars().all()

        return [from_record(r) for r in records], total or 0
