"""Read-side queries over applications."""

import logging
from dataclasses import dataclass
from uuid import UUID

from api.schemas.applications import DashboardQuery
from core.domain import Application, ApplicationStatus
from core.interfaces import ApplicationFilter, ApplicationStore, PageRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplicationPage:
    items: list[Application]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit


class DashboardService:
    """Filtered, paginated application listings.

    The store computes the page and the total from the same filter, so the
    count always describes the set the page was cut from.
    """

    def __init__(self, store: ApplicationStore):
        self.store = store

    async def _run(self, filters: ApplicationFilter, page: PageRequest) -> ApplicationPage:
        items, total = await self.store.search(filters, page)
        return ApplicationPage(items=items, total=total, page=page.page, limit=page.limit)

    async def search(self, query: DashboardQuery) -> ApplicationPage:
        """
        Company dashboard search.

        Args:
            query: Company, optional status/min score, pagination and sort

        Returns:
            One page of applications with the filtered total
        """
        result = await self._run(
            ApplicationFilter(
                company_id=query.company_id,
                status=query.status,
                min_score=query.min_score,
                include_deleted=query.include_deleted,
            ),
            PageRequest(
                page=query.page,
                limit=query.limit,
                sort_by=query.sort_by,
                sort_order=query.sort_order,
            ),
        )
        logger.debug(
            f"Dashboard search for company {query.company_id}: "
            f"{len(result.items)} of {result.total}"
        )
        return result

    async def for_candidate(
        self,
        candidate_id: UUID,
        status: ApplicationStatus | None = None,
        page: int = 1,
        limit: int = 20,
        company_id: UUID | None = None,
    ) -> ApplicationPage:
        """Applications of one candidate, optionally narrowed to one company."""
        return await self._run(
            ApplicationFilter(candidate_id=candidate_id, company_id=company_id, status=status),
            PageRequest(page=page, limit=limit),
        )

    async def for_job(
        self,
        job_id: UUID,
        status: ApplicationStatus | None = None,
        min_score: int | None = None,
        page: int = 1,
        limit: int = 20,
        company_id: UUID | None = None,
    ) -> ApplicationPage:
        return await self._run(
            ApplicationFilter(job_id=job_id, company_id=company_id, status=status, min_score=min_score),
            PageRequest(page=page, limit=limit),
        )
