"""
Applications Module

One row per Application aggregate. Embedded collections (status history,
interviews, documents) are stored as JSON so the aggregate is written in a
single versioned UPDATE.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.domain import ApplicationStatus
from database.engine import Base


class ApplicationRecord(Base):
    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    cover_letter: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_letter_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    resume_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    documents: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[ApplicationStatus] = mapped_column(
        String(32), default=ApplicationStatus.SUBMITTED, nullable=False
    )
    status_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    scoring_details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    interviews: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # "metadata" is reserved on declarative classes
    submission_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_applications_job_candidate"),
        Index("idx_applications_company_created", "company_id", "deleted_at", "created_at"),
        Index("idx_applications_company_status", "company_id", "status"),
        Index("idx_applications_company_score", "company_id", "score"),
        Index("idx_applications_job_created", "job_id", "created_at"),
    )
