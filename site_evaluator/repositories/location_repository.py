"""Repository for Location records and their cached sections."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from site_evaluator.database.models import Job, Location, LocationSection
from site_evaluator.repositories.base_repository import BaseRepository
from site_evaluator.schemas.enums import CACHED_SECTIONS, DataSection, FetchOutcome


class LocationRepository(BaseRepository[Location]):
    """Repository for canonical property locations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Location)

    async def get_fresh(self, location_id: UUID) -> Optional[Location]:
        """Get a location, overwriting any identity-map state with database values."""
        query = (
            select(Location)
            .where(Location.id == location_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_section(self, location_id: UUID, section: DataSection) -> Optional[LocationSection]:
        result = await self.session.execute(
            select(LocationSection)
            .where(LocationSection.location_id == location_id, LocationSection.section == section)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_address_key(self, address_key: str) -> Optional[Location]:
        result = await self.session.execute(
            select(Location).where(Location.address_key == address_key)
        )
        return result.scalar_one_or_none()

    async def get_by_title_reference(self, title_reference: str) -> Optional[Location]:
        result = await self.session.execute(
            select(Location)
            .where(func.upper(Location.title_reference) == title_reference.upper())
            .order_by(Location.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_in_bounds(
        self,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
    ) -> List[Location]:
        """Find locations inside a lat/lon bounding box."""
        return await self.find(
            Location.latitude.between(min_lat, max_lat),
            Location.longitude.between(min_lon, max_lon),
        )

    async def create_location(self, **fields: Any) -> Location:
        """Create a location together with an empty row for every cached section.

        Args:
            **fields: Location column values

        Returns:
            The created Location
        """
        location = Location(**fields)
        location.sections = [LocationSection(section=section) for section in CACHED_SECTIONS]
        self.session.add(location)
        await self.session.flush()
        return location

    async def record_section_success(
        self,
        location_id: UUID,
        section: DataSection,
        payload: Dict[str, Any],
        retrieved_at: datetime,
    ) -> bool:
        """Store a freshly retrieved payload for one section.

        The payload is only replaced when no newer retrieval has been stored,
        so concurrent writers to the same section resolve last-write-wins by
        retrieval timestamp. Other sections are never touched.

        Returns:
            True if the payload was applied
        """
        payload_result = await self.session.execute(
            update(LocationSection)
            .where(
                LocationSection.location_id == location_id,
                LocationSection.section == section,
                or_(LocationSection.cached_at.is_(None), LocationSection.cached_at <= retrieved_at),
            )
            .values(
                payload=payload,
                cached_at=retrieved_at,
                version=LocationSection.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self._record_attempt(location_id, section, FetchOutcome.OK, None, retrieved_at)
        return payload_result.rowcount > 0

    async def record_section_failure(
        self,
        location_id: UUID,
        section: DataSection,
        outcome: FetchOutcome,
        error: Optional[str],
        attempted_at: datetime,
    ) -> None:
        """Record a failed or empty fetch without touching the cached payload."""
        await self._record_attempt(location_id, section, outcome, error, attempted_at)

    async def _record_attempt(
        self,
        location_id: UUID,
        section: DataSection,
        outcome: FetchOutcome,
        error: Optional[str],
        attempted_at: datetime,
    ) -> None:
        await self.session.execute(
            update(LocationSection)
            .where(
                LocationSection.location_id == location_id,
                LocationSection.section == section,
                or_(
                    LocationSection.last_attempt_at.is_(None),
                    LocationSection.last_attempt_at <= attempted_at,
                ),
            )
            .values(
                last_attempt_at=attempted_at,
                last_outcome=outcome,
                last_error=error,
                version=LocationSection.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

    async def mark_refreshed(self, location_id: UUID, refreshed_at: datetime) -> None:
        """Advance last_refreshed_at monotonically."""
        await self.session.execute(
            update(Location)
            .where(
                Location.id == location_id,
                or_(Location.last_refreshed_at.is_(None), Location.last_refreshed_at < refreshed_at),
            )
            .values(last_refreshed_at=refreshed_at)
            .execution_options(synchronize_session=False)
        )

    async def list_summaries(self, skip: int = 0, limit: int = 50) -> Sequence[Any]:
        """List locations newest first with their job count and latest job date."""
        job_stats = (
            select(
                Job.location_id.label("location_id"),
                func.count(Job.id).label("job_count"),
                func.max(Job.created_at).label("last_job_date"),
            )
            .group_by(Job.location_id)
            .subquery()
        )
        query = (
            select(Location, job_stats.c.job_count, job_stats.c.last_job_date)
            .outerjoin(job_stats, job_stats.c.location_id == Location.id)
            .order_by(Location.created_at.desc(), Location.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return result.all()
