"""Job lifecycle orchestration."""

import asyncio
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_evaluator.core.exceptions import (
    InvalidStatusTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from site_evaluator.database.models import Job, Location, utcnow
from site_evaluator.repositories.job_repository import JobRepository
from site_evaluator.schemas.enums import (
    TRACKED_SECTIONS,
    DataSection,
    GapSeverity,
    JobStatus,
    SectionStatus,
)
from site_evaluator.schemas.job import (
    CreateJobRequest,
    DataGap,
    JobListFilter,
    SectionState,
    UpdateJobRequest,
)
from site_evaluator.services.base_service import BaseService
from site_evaluator.services.completeness import score
from site_evaluator.services.location_cache import LocationCache
from site_evaluator.utils.locks import KeyedLock
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_REFERENCE_ATTEMPTS = 5

_WORKING: FrozenSet[JobStatus] = frozenset({
    JobStatus.IN_PROGRESS, JobStatus.DATA_COLLECTION, JobStatus.REVIEW,
})

ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.CREATED: _WORKING | {JobStatus.COMPLETE, JobStatus.ON_HOLD, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: _WORKING | {JobStatus.COMPLETE, JobStatus.ON_HOLD, JobStatus.CANCELLED},
    JobStatus.DATA_COLLECTION: _WORKING | {JobStatus.COMPLETE, JobStatus.ON_HOLD, JobStatus.CANCELLED},
    JobStatus.REVIEW: _WORKING | {JobStatus.COMPLETE, JobStatus.ON_HOLD, JobStatus.CANCELLED},
    JobStatus.ON_HOLD: _WORKING | {JobStatus.CREATED, JobStatus.CANCELLED},
    # Reopening a complete job is an explicit move back to in progress
    JobStatus.COMPLETE: frozenset({JobStatus.IN_PROGRESS}),
    JobStatus.CANCELLED: frozenset(),
}

NO_COLLECTION_STATES: FrozenSet[JobStatus] = frozenset({JobStatus.CANCELLED, JobStatus.ON_HOLD})

GAP_SEVERITY: Dict[DataSection, GapSeverity] = {
    DataSection.LOCATION: GapSeverity.MEDIUM,
    DataSection.ZONING: GapSeverity.HIGH,
    DataSection.HAZARDS: GapSeverity.HIGH,
    DataSection.GEOTECH: GapSeverity.MEDIUM,
    DataSection.INFRASTRUCTURE: GapSeverity.MEDIUM,
    DataSection.CLIMATE: GapSeverity.LOW,
    DataSection.LAND: GapSeverity.MEDIUM,
}

SUGGESTED_ACTIONS: Dict[DataSection, str] = {
    DataSection.LOCATION: "Obtain the parcel boundary from a survey plan",
    DataSection.ZONING: "Check the district plan maps with the council",
    DataSection.HAZARDS: "Request a LIM report from the council",
    DataSection.GEOTECH: "Commission a site-specific geotechnical investigation",
    DataSection.INFRASTRUCTURE: "Request service plans from the council",
    DataSection.CLIMATE: "Use NZS 3604 default wind and rainfall values",
    DataSection.LAND: "Order a title search",
}


def format_reference(year: int, sequence: int) -> str:
    return f"JOB-{year}-{sequence:05d}"


def build_data_gaps(
    location: Location,
    statuses: Dict[DataSection, SectionStatus],
) -> List[DataGap]:
    """Describe every section that is not complete, plus content-level gaps."""
    gaps: List[DataGap] = []
    for section in TRACKED_SECTIONS:
        status = statuses[section]
        if status == SectionStatus.COMPLETE:
            continue

        row = location.section(section) if section != DataSection.LOCATION else None
        severity = GAP_SEVERITY[section]
        if status == SectionStatus.ERROR:
            reason = f"Provider error: {row.last_error}" if row is not None and row.last_error else "Provider error"
            action = f"Retry the {section.value} refresh; if it keeps failing, {SUGGESTED_ACTIONS[section].lower()}"
        elif status == SectionStatus.PARTIAL:
            reason = "Cached data is older than the freshness threshold"
            action = f"Refresh the {section.value} section"
            severity = GapSeverity.LOW
        elif status == SectionStatus.NOT_STARTED:
            reason = "Data has not been collected"
            action = "Run data collection"
        elif section == DataSection.LOCATION:
            reason = "Parcel boundary is not available"
            action = SUGGESTED_ACTIONS[section]
        else:
            reason = row.last_error if row is not None and row.last_error else "No data available for this property"
            action = SUGGESTED_ACTIONS[section]

        gaps.append(DataGap(
            section=section,
            field=section.value,
            reason=reason,
            suggested_action=action,
            severity=severity,
        ))

    geotech = location.section(DataSection.GEOTECH)
    if (
        statuses.get(DataSection.GEOTECH) == SectionStatus.COMPLETE
        and geotech is not None
        and (geotech.payload or {}).get("investigation_required")
    ):
        gaps.append(DataGap(
            section=DataSection.GEOTECH,
            field="investigations",
            reason="No boreholes found near the property",
            suggested_action=SUGGESTED_ACTIONS[DataSection.GEOTECH],
            severity=GapSeverity.HIGH,
        ))
    return gaps


class JobOrchestrator(BaseService):
    """Creates jobs, drives their lifecycle and snapshots their data status.

    Writes to one job id are serialized by an in-process keyed lock; the
    job's version column protects against writers in other processes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        location_cache: LocationCache,
        clock=utcnow,
    ):
        super().__init__(session_factory)
        self.location_cache = location_cache
        self.clock = clock
        self._job_locks = KeyedLock()
        self._reference_lock = asyncio.Lock()

    def job_lock(self, job_id: UUID):
        """Async context manager serializing writes to one job."""
        return self._job_locks.hold(job_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_job(self, request: CreateJobRequest, owner_id: Optional[str] = None) -> Job:
        """Create a job against a resolved Location.

        Raises:
            ValidationError: If the request does not carry exactly one locator
            NotResolvableError: If the locator cannot be geocoded
            NotFoundError: If location_id does not exist
        """
        kinds = request.provided_locators()
        if len(kinds) != 1:
            raise ValidationError(
                "Exactly one of address, title_reference, coordinates or location_id is required"
                if not kinds else f"Ambiguous locator: {', '.join(kinds)} supplied"
            )

        if request.location_id is not None:
            location = await self.location_cache.get_location(request.location_id)
        else:
            location = await self.location_cache.resolve(request.locator())

        fields = request.model_dump(
            exclude={"address", "title_reference", "coordinates", "location_id", "title", "auto_start_data_collection"},
        )
        title = request.title or f"Evaluation - {location.short_address()}"
        data_status = {
            section.value: SectionState().model_dump(mode="json") for section in TRACKED_SECTIONS
        }

        job_id = await self._insert_with_reference(
            title=title,
            location_id=location.id,
            address=location.address,
            owner_id=owner_id,
            status=JobStatus.CREATED,
            data_status=data_status,
            completeness_percent=0,
            data_gaps=[],
            **fields,
        )

        if request.auto_start_data_collection:
            return await self.run_data_collection(job_id)
        return await self.get_job(job_id)

    async def _insert_with_reference(self, **fields: Any) -> UUID:
        """Insert a job with the next reference of the current year.

        The in-process lock serializes allocation; a unique-constraint
        collision with another process is retried with a fresh read.
        """
        for attempt in range(1, MAX_REFERENCE_ATTEMPTS + 1):
            async with self._reference_lock:
                try:
                    async with self.unit_of_work() as session:
                        repo = JobRepository(session)
                        now = self.clock()
                        sequence = await repo.max_sequence_for_year(now.year) + 1
                        job = await repo.create(
                            job_reference=format_reference(now.year, sequence),
                            reference_year=now.year,
                            reference_sequence=sequence,
                            created_at=now,
                            updated_at=now,
                            **fields,
                        )
                        job_id, reference = job.id, job.job_reference

                except PersistenceError as e:
                    if not isinstance(e.original_error, IntegrityError) or attempt == MAX_REFERENCE_ATTEMPTS:
                        raise
                    LOGGER.warning(
                        "Job reference collision, retrying",
                        extra={"attempt": attempt},
                    )
                    continue

            LOGGER.info(
                "Job created",
                extra={"job_id": str(job_id), "job_reference": reference, "location_id": str(fields["location_id"])},
            )
            return job_id

        raise PersistenceError("Could not allocate a job reference")

    # ------------------------------------------------------------------
    # Data collection
    # ------------------------------------------------------------------

    async def run_data_collection(self, job_id: UUID) -> Job:
        """Refresh stale location data and snapshot section status onto the job.

        Idempotent: with no stale sections a second call performs no provider
        calls and records the same statuses.

        Raises:
            NotFoundError: If the job does not exist
            ValidationError: If the job is cancelled or on hold
        """
        return await self._collect(job_id)

    async def refresh_sections(self, job_id: UUID, sections: Iterable[Any]) -> Job:
        """Force-refresh the named sections once, then collect the remaining stale ones."""
        sections = list(sections)
        if not sections:
            raise ValidationError("At least one section is required")
        # Reject unknown names before any side effect
        self.location_cache.requested_sections(sections)
        return await self._collect(job_id, forced_sections=sections)

    async def _collect(self, job_id: UUID, forced_sections: Optional[List[Any]] = None) -> Job:
        async with self.job_lock(job_id):
            async with self.unit_of_work() as session:
                job = await self._load(JobRepository(session), job_id)
                if job.status in NO_COLLECTION_STATES:
                    raise ValidationError(f"Cannot collect data for a job that is {job.status.value}")
                job.status = JobStatus.DATA_COLLECTION
                if job.started_at is None:
                    job.started_at = self.clock()
                location_id = job.location_id

        # Provider calls run outside the job lock
        if forced_sections:
            await self.location_cache.refresh(location_id, forced_sections, force=True)
        await self.location_cache.refresh(location_id, exclude=forced_sections)

        return await self._synchronize(job_id)

    async def _synchronize(self, job_id: UUID) -> Job:
        async with self.job_lock(job_id):
            async with self.unit_of_work() as session:
                job = await self._load(JobRepository(session), job_id, fresh=True)
                location = job.location
                now = self.clock()

                statuses = {
                    section: self.location_cache.section_status(location, section, now=now)
                    for section in TRACKED_SECTIONS
                }
                job.data_status = {
                    section.value: SectionState(
                        status=status,
                        updated_at=self._status_timestamp(location, section, status),
                    ).model_dump(mode="json")
                    for section, status in statuses.items()
                }
                job.data_gaps = [gap.model_dump(mode="json") for gap in build_data_gaps(location, statuses)]
                job.completeness_percent = score(statuses)

                # A hold or cancellation made during collection stands
                if job.status not in NO_COLLECTION_STATES:
                    job.status = JobStatus.COMPLETE
                    if job.completed_at is None:
                        job.completed_at = now

                LOGGER.info(
                    "Job data synchronized",
                    extra={
                        "job_id": str(job_id),
                        "status": job.status.value,
                        "completeness": job.completeness_percent,
                        "gaps": len(job.data_gaps),
                    },
                )

        return await self.get_job(job_id)

    @staticmethod
    def _status_timestamp(location: Location, section: DataSection, status: SectionStatus) -> Optional[datetime]:
        """Timestamp of the cached data a status was derived from."""
        if section == DataSection.LOCATION:
            return location.created_at
        row = location.section(section)
        if row is None:
            return None
        if status in (SectionStatus.COMPLETE, SectionStatus.PARTIAL):
            return row.cached_at
        return row.last_attempt_at

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def update_job(self, job_id: UUID, update: UpdateJobRequest) -> Job:
        """Merge provided, non-null fields into the job's metadata."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)

        async with self.job_lock(job_id):
            async with self.unit_of_work() as session:
                job = await self._load(JobRepository(session), job_id)
                for key, value in changes.items():
                    setattr(job, key, value)

        LOGGER.info("Job updated", extra={"job_id": str(job_id), "fields": sorted(changes)})
        return await self.get_job(job_id)

    async def update_status(self, job_id: UUID, status: JobStatus) -> Job:
        """Apply a lifecycle transition.

        Raises:
            InvalidStatusTransitionError: If the transition is not allowed
        """
        async with self.job_lock(job_id):
            async with self.unit_of_work() as session:
                job = await self._load(JobRepository(session), job_id)
                current = job.status
                if status != current:
                    if status not in ALLOWED_TRANSITIONS[current]:
                        raise InvalidStatusTransitionError(current.value, status.value)

                    now = self.clock()
                    job.status = status
                    if status == JobStatus.COMPLETE and job.completed_at is None:
                        job.completed_at = now
                    if status in (JobStatus.IN_PROGRESS, JobStatus.DATA_COLLECTION) and job.started_at is None:
                        job.started_at = now

                    LOGGER.info(
                        "Job status changed",
                        extra={"job_id": str(job_id), "from": current.value, "to": status.value},
                    )

        return await self.get_job(job_id)

    async def cancel_job(self, job_id: UUID) -> Job:
        return await self.update_status(job_id, JobStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_job(self, job_id: UUID) -> Job:
        async with self.unit_of_work() as session:
            return await self._load(JobRepository(session), job_id)

    async def get_job_by_reference(self, job_reference: str) -> Job:
        async with self.unit_of_work() as session:
            job = await JobRepository(session).get_by_reference(job_reference)
        if job is None:
            raise NotFoundError("Job", job_reference)
        return job

    async def list_jobs(self, filters: JobListFilter) -> Tuple[List[Job], int]:
        async with self.unit_of_work() as session:
            return await JobRepository(session).list_filtered(
                owner_id=filters.owner_id,
                location_id=filters.location_id,
                status=filters.status,
                purpose=filters.purpose,
                created_from=filters.created_from,
                created_to=filters.created_to,
                customer_name=filters.customer_name,
                text=filters.search,
                sort_by=filters.sort_by,
                descending=filters.descending,
                skip=filters.skip,
                limit=filters.limit,
            )

    async def search_jobs(self, query: str, limit: int = 50) -> List[Job]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        async with self.unit_of_work() as session:
            return await JobRepository(session).search(query, limit=limit)

    async def jobs_for_location(self, location_id: UUID) -> List[Job]:
        await self.location_cache.get_location(location_id)
        async with self.unit_of_work() as session:
            return await JobRepository(session).for_location(location_id)

    @staticmethod
    async def _load(repo: JobRepository, job_id: UUID, fresh: bool = False) -> Job:
        job = await (repo.get_fresh(job_id) if fresh else repo.get_by_id(job_id))
        if job is None:
            raise NotFoundError("Job", job_id)
        return job
