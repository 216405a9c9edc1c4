"""Repository for report records and database-held report blobs."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from site_evaluator.database.models import JobReport, ReportBlob
from site_evaluator.repositories.base_repository import BaseRepository


class ReportRepository(BaseRepository[JobReport]):
    """Repository for generated report records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, JobReport)

    async def get_for_job(self, job_id: UUID, report_id: UUID) -> Optional[JobReport]:
        """Get a report only if it belongs to the given job."""
        result = await self.session.execute(
            select(JobReport).where(JobReport.id == report_id, JobReport.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def list_for_job(self, job_id: UUID) -> List[JobReport]:
        return await self.find(
            JobReport.job_id == job_id,
            order_by=[JobReport.generated_at, JobReport.id],
        )

    async def record_download(self, report_id: UUID, downloaded_at: datetime) -> bool:
        """Atomically increment the download counter.

        Returns:
            True if the report row was updated
        """
        result = await self.session.execute(
            update(JobReport)
            .where(JobReport.id == report_id)
            .values(
                download_count=JobReport.download_count + 1,
                last_downloaded_at=downloaded_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class ReportBlobRepository(BaseRepository[ReportBlob]):
    """Repository for report binaries kept in the database."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ReportBlob)

    async def get_by_key(self, storage_key: str) -> Optional[ReportBlob]:
        result = await self.session.execute(
            select(ReportBlob).where(ReportBlob.storage_key == storage_key)
        )
        return result.scalar_one_or_none()

    async def put(self, storage_key: str, content: bytes, content_type: str) -> ReportBlob:
        existing = await self.get_by_key(storage_key)
        if existing is not None:
            existing.content = content
            existing.content_type = content_type
            existing.size = len(content)
            await self.session.flush()
            return existing
        return await self.create(
            storage_key=storage_key,
            content=content,
            content_type=content_type,
            size=len(content),
        )

    async def delete_by_key(self, storage_key: str) -> bool:
        result = await self.session.execute(
            delete(ReportBlob).where(ReportBlob.storage_key == storage_key)
        )
        return result.rowcount > 0
