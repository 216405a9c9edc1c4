"""Repository for Job records."""

from datetime import datetime
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from site_evaluator.database.models import Job
from site_evaluator.repositories.base_repository import BaseRepository
from site_evaluator.schemas.enums import JobPurpose, JobStatus

SORTABLE_COLUMNS = {
    "created_at": Job.created_at,
    "job_reference": Job.job_reference,
    "customer_name": Job.customer_name,
    "status": Job.status,
    "completeness_percent": Job.completeness_percent,
}


class JobRepository(BaseRepository[Job]):
    """Repository for jobs and job reference allocation."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Job)

    async def get_fresh(self, job_id: UUID) -> Optional[Job]:
        """Get a job, overwriting any identity-map state with database values."""
        result = await self.session.execute(
            select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_reference(self, job_reference: str) -> Optional[Job]:
        result = await self.session.execute(
            select(Job).where(Job.job_reference == job_reference.strip().upper())
        )
        return result.scalar_one_or_none()

    async def max_sequence_for_year(self, year: int) -> int:
        """Highest reference sequence allocated in a year, or 0."""
        result = await self.session.execute(
            select(func.max(Job.reference_sequence)).where(Job.reference_year == year)
        )
        return result.scalar_one_or_none() or 0

    async def for_location(self, location_id: UUID) -> List[Job]:
        return await self.find(
            Job.location_id == location_id,
            order_by=[Job.created_at.desc(), Job.id],
        )

    async def list_filtered(
        self,
        *,
        owner_id: Optional[str] = None,
        location_id: Optional[UUID] = None,
        status: Optional[JobStatus] = None,
        purpose: Optional[JobPurpose] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        customer_name: Optional[str] = None,
        text: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Job], int]:
        """List jobs matching filters with a total count.

        Returns:
            Tuple of (page of jobs, total matching count)
        """
        criteria: List[Any] = []
        if owner_id:
            criteria.append(Job.owner_id == owner_id)
        if location_id:
            criteria.append(Job.location_id == location_id)
        if status:
            criteria.append(Job.status == status)
        if purpose:
            criteria.append(Job.purpose == purpose)
        if created_from:
            criteria.append(Job.created_at >= created_from)
        if created_to:
            criteria.append(Job.created_at <= created_to)
        if customer_name:
            criteria.append(Job.customer_name.ilike(f"%{customer_name}%"))
        if text:
            criteria.append(self._text_match(text))

        column = SORTABLE_COLUMNS.get(sort_by, Job.created_at)
        ordering = [column.desc() if descending else column.asc(), Job.id]

        total = await self.count(*criteria)

        query = select(Job)
        if criteria:
            query = query.where(*criteria)
        query = query.order_by(*ordering).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def search(self, text: str, limit: int = 50) -> List[Job]:
        """Free-text search over reference, customer and address, newest first."""
        return await self.find(
            self._text_match(text),
            order_by=[Job.created_at.desc(), Job.id],
            limit=limit,
        )

    @staticmethod
    def _text_match(text: str):
        pattern = f"%{text.strip()}%"
        return or_(
            Job.job_reference.ilike(pattern),
            Job.customer_name.ilike(pattern),
            Job.customer_reference.ilike(pattern),
            Job.address.ilike(pattern),
        )
