"""Read-only job and candidate lookups."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain import CandidateRef, JobRef
from database.engine import AsyncSessionLocal
from database.models.candidates import Candidate
from database.models.jobs import Job


class SQLJobDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get(self, job_id: uuid.UUID) -> JobRef | None:
        async with self.session_factory() as session:
            job = (await session.execute(select(Job).where(Job.id == job_id))).scalar_one_or_none()
            if job is None:
                return None
            return JobRef(id=job.id, company_id=job.company_id, title=job.title, is_active=job.is_active)


class SQLCandidateDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get(self, candidate_id: uuid.UUID) -> CandidateRef | None:
        async with self.session_factory() as session:
            candidate = (
                await session.execute(select(Candidate).where(Candidate.id == candidate_id))
            ).scalar_one_or_none()
            if candidate is None:
                return None
            return CandidateRef(
                id=candidate.id,
                user_id=candidate.user_id,
                resume_present=bool(candidate.resume_url),
            )
