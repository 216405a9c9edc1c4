"""Report generation, storage and retrieval for jobs."""

import asyncio
import uuid
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_evaluator.core.exceptions import AppError, NotFoundError, RenderError
from site_evaluator.database.models import Job, JobReport, utcnow
from site_evaluator.repositories.report_repository import ReportRepository
from site_evaluator.schemas.enums import CACHED_SECTIONS, ReportType, SectionStatus
from site_evaluator.schemas.report import EvaluationSnapshot, ReportOptions, SnapshotSection
from site_evaluator.services.base_service import BaseService
from site_evaluator.services.blob_storage import BlobStore
from site_evaluator.services.job_orchestrator import JobOrchestrator
from site_evaluator.services.report_renderer import REPORT_TITLES, ReportRenderer
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


def storage_key_for(job_id: UUID, report_id: UUID, extension: str = "pdf") -> str:
    return f"reports/{job_id}/{report_id}.{extension}"


def build_snapshot(job: Job, now) -> EvaluationSnapshot:
    """Copy a job and its location's cached data into an immutable snapshot.

    Section statuses come from the job's last synchronized data status, so a
    report shows exactly what the job recorded.
    """
    location = job.location
    sections = []
    for section in CACHED_SECTIONS:
        row = location.section(section)
        recorded = (job.data_status or {}).get(section.value) or {}
        sections.append(SnapshotSection(
            section=section,
            status=SectionStatus(recorded.get("status", SectionStatus.NOT_STARTED.value)),
            payload=dict(row.payload) if row is not None and row.payload is not None else None,
            cached_at=row.cached_at if row is not None else None,
        ))

    return EvaluationSnapshot(
        job_id=job.id,
        job_reference=job.job_reference,
        job_title=job.title,
        customer_name=job.customer_name,
        customer_company=job.customer_company,
        customer_reference=job.customer_reference,
        purpose=job.purpose,
        intended_use=job.intended_use,
        intended_use_details=job.intended_use_details,
        is_new_development=job.is_new_development,
        proposed_height=job.proposed_height,
        proposed_coverage=job.proposed_coverage,
        proposed_units=job.proposed_units,
        proposed_gfa=job.proposed_gfa,
        location_id=location.id,
        address=location.address,
        title_reference=location.title_reference,
        legal_description=location.legal_description,
        latitude=location.latitude,
        longitude=location.longitude,
        site_area_m2=location.site_area_m2,
        territorial_authority=location.territorial_authority,
        sections=tuple(sections),
        completeness_percent=job.completeness_percent,
        data_gaps=tuple(dict(gap) for gap in job.data_gaps or []),
        generated_at=now,
    )


class ReportCoordinator(BaseService):
    """Generates report artifacts for jobs and serves them back."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: JobOrchestrator,
        renderer: ReportRenderer,
        blob_store: BlobStore,
        clock=utcnow,
    ):
        super().__init__(session_factory)
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.blob_store = blob_store
        self.clock = clock

    async def generate(
        self,
        job_id: UUID,
        report_type: ReportType,
        options: Optional[ReportOptions] = None,
        generated_by: Optional[str] = None,
    ) -> JobReport:
        """Render, store and record a report for a job.

        Raises:
            NotFoundError: If the job does not exist
            RenderError: If rendering fails; nothing is stored
            StorageError: If the artifact cannot be stored
        """
        options = options or ReportOptions()
        job = await self.orchestrator.get_job(job_id)
        now = self.clock()
        snapshot = build_snapshot(job, now)

        try:
            content = await asyncio.to_thread(self.renderer.render, snapshot, report_type, options)
        except Exception as e:
            LOGGER.error(
                f"Report rendering failed: {str(e)}",
                exc_info=True,
                extra={"job_id": str(job_id), "report_type": report_type.value},
            )
            raise RenderError(f"Failed to render {report_type.value} report: {str(e)}", original_error=e)

        report_id = uuid.uuid4()
        storage_key = storage_key_for(job_id, report_id, self.renderer.extension)
        file_name = f"{snapshot.job_reference}_{report_type.value}_{now.strftime('%Y%m%d')}.{self.renderer.extension}"

        await self.blob_store.put(storage_key, content, self.renderer.content_type)

        try:
            async with self.orchestrator.job_lock(job_id):
                async with self.unit_of_work() as session:
                    report = await ReportRepository(session).create(
                        id=report_id,
                        job_id=job_id,
                        report_type=report_type,
                        title=f"{REPORT_TITLES[report_type]} - {snapshot.job_reference}",
                        file_name=file_name,
                        content_type=self.renderer.content_type,
                        file_size=len(content),
                        options=options.model_dump(mode="json"),
                        storage_key=storage_key,
                        generated_at=now,
                        generated_by=generated_by,
                    )
        except AppError:
            LOGGER.warning(
                "Report record insert failed, removing stored artifact",
                extra={"job_id": str(job_id), "storage_key": storage_key},
            )
            await self.blob_store.delete(storage_key)
            raise

        LOGGER.info(
            "Report generated",
            extra={
                "job_id": str(job_id),
                "report_id": str(report_id),
                "report_type": report_type.value,
                "file_size": len(content),
            },
        )
        return report

    async def fetch_content(self, job_id: UUID, report_id: UUID) -> Tuple[JobReport, bytes]:
        """Return a report and its bytes, counting the download.

        Raises:
            NotFoundError: If the job, the report (for this job) or the stored
                artifact is missing; the download count is unchanged
        """
        await self.orchestrator.get_job(job_id)

        async with self.unit_of_work() as session:
            report = await ReportRepository(session).get_for_job(job_id, report_id)
        if report is None:
            raise NotFoundError("Report", report_id)

        content = await self.blob_store.get(report.storage_key)
        if content is None:
            LOGGER.warning(
                "Report artifact missing from storage",
                extra={"report_id": str(report_id), "storage_key": report.storage_key},
            )
            raise NotFoundError("Report content", report_id)

        async with self.unit_of_work() as session:
            repo = ReportRepository(session)
            await repo.record_download(report_id, self.clock())
            report = await repo.get_for_job(job_id, report_id)
        return report, content

    async def list_reports(self, job_id: UUID) -> List[JobReport]:
        await self.orchestrator.get_job(job_id)
        async with self.unit_of_work() as session:
            return await ReportRepository(session).list_for_job(job_id)
