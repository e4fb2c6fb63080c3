"""
Collaborator contracts consumed by the lifecycle engine.

Concrete implementations live in ``database`` (store and lookups),
``core.storage`` (attachments) and ``core.notifications`` (notifier and
cleanup scheduler).
"""

from dataclasses import dataclass
from typing import Literal, Protocol
from uuid import UUID

from core.domain import (
    Actor,
    Application,
    ApplicationStatus,
    CandidateRef,
    JobRef,
)
from core.policies import Permission


@dataclass(frozen=True)
class ApplicationFilter:
    """Read-side filter shared by page and count queries."""

    company_id: UUID | None = None
    candidate_id: UUID | None = None
    job_id: UUID | None = None
    status: ApplicationStatus | None = None
    min_score: int | None = None
    include_deleted: bool = False


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 20
    sort_by: Literal["created_at", "score"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class StoredObject:
    url: str
    name: str
    content_type: str
    size: int


class ApplicationStore(Protocol):
    async def get(self, application_id: UUID, include_deleted: bool = False) -> Application | None:
        ...

    async def add(self, application: Application) -> Application:
        """Insert; raises DuplicateApplicationError on (job, candidate) collision."""
        ...

    async def save(self, application: Application) -> Application:
        """Versioned update; raises StaleWriteError if ``application.version`` is stale."""
        ...

    async def delete(self, application_id: UUID) -> bool:
        ...

    async def search(
        self, filters: ApplicationFilter, page: PageRequest
    ) -> tuple[list[Application], int]:
        ...


class JobDirectory(Protocol):
    async def get(self, job_id: UUID) -> JobRef | None:
        ...


class CandidateDirectory(Protocol):
    async def get(self, candidate_id: UUID) -> CandidateRef | None:
        ...


class AuthorizationPolicy(Protocol):
    def can_perform(self, actor: Actor, action: Permission, application: Application) -> bool:
        ...


class AttachmentStorage(Protocol):
    async def store(self, data: bytes, name: str, content_type: str) -> StoredObject:
        ...

    async def delete(self, url: str) -> bool:
        """Return False when the object is already gone; raise StorageFailureError on I/O errors."""
        ...


class Notifier(Protocol):
    def notify(self, recipient_id: UUID, message: str) -> None:
        ...


class CleanupScheduler(Protocol):
    def schedule(self, urls: list[str]) -> None:
        ...
