"""Canonical property records and their per-section cached provider data.

The cache resolves a locator (address, title reference or coordinates) to a
single shared Location and refreshes its cached sections from the external
providers. Each section is fetched concurrently under its own timeout and
written in its own transaction, so one slow or failing provider never holds
back or rolls back another section.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_evaluator.core.config import CacheSettings
from site_evaluator.core.exceptions import (
    NotFoundError,
    NotResolvableError,
    PersistenceError,
    ProviderError,
    ProviderNotAvailableError,
    ValidationError,
)
from site_evaluator.database.models import Location, utcnow
from site_evaluator.providers.registry import ProviderRegistry
from site_evaluator.repositories.location_repository import LocationRepository
from site_evaluator.schemas.enums import (
    CACHED_SECTIONS,
    DataSection,
    FetchOutcome,
    ProviderKey,
    SectionStatus,
    parse_sections,
)
from site_evaluator.schemas.location import (
    AddressCandidate,
    AddressSuggestion,
    Locator,
    LocationSummary,
)
from site_evaluator.schemas.providers import (
    ClimateData,
    GeotechnicalData,
    HazardData,
    HazardSummary,
    DataSource,
)
from site_evaluator.services.base_service import BaseService
from site_evaluator.utils.geo import are_valid_coordinates, bounding_box, haversine_distance
from site_evaluator.utils.locks import KeyedLock
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)

STREET_PATTERN = re.compile(r"^(\d+[A-Za-z]?(?:/\d+[A-Za-z]?)?)\s+(.+)$")

Fetcher = Callable[["RefreshTarget"], Awaitable[Optional[Dict[str, Any]]]]


def address_key(text: str) -> str:
    """Normalise an address for exact matching: lower case, no commas, single spaces."""
    return " ".join(text.lower().replace(",", " ").split())


def parse_street(formatted_address: str) -> tuple[Optional[str], Optional[str]]:
    """Split the street number and street name out of a formatted address."""
    for part in formatted_address.split(","):
        match = STREET_PATTERN.match(part.strip())
        if match:
            return match.group(1), match.group(2)
    return None, None


@dataclass(frozen=True)
class RefreshTarget:
    """Immutable view of the Location fields the section fetchers need."""

    location_id: UUID
    latitude: float
    longitude: float
    title_reference: Optional[str]


class LocationCache(BaseService):
    """Owns Location records and their cached provider sections."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        cache_settings: CacheSettings,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(session_factory)
        self.providers = providers
        self.settings = cache_settings
        self.clock = clock
        self._resolve_lock = asyncio.Lock()
        self._section_locks = KeyedLock()
        self._fetchers: Dict[DataSection, Fetcher] = {
            DataSection.ZONING: self._fetch_zoning,
            DataSection.HAZARDS: self._fetch_hazards,
            DataSection.GEOTECH: self._fetch_geotech,
            DataSection.INFRASTRUCTURE: self._fetch_infrastructure,
            DataSection.CLIMATE: self._fetch_climate,
            DataSection.LAND: self._fetch_land,
        }

    # ------------------------------------------------------------------
    # Staleness and status
    # ------------------------------------------------------------------

    def max_age_for(self, section: DataSection) -> timedelta:
        if section == DataSection.CLIMATE:
            return timedelta(hours=self.settings.climate_max_age_hours)
        return timedelta(hours=self.settings.max_age_hours)

    def is_stale(
        self,
        location: Location,
        section: DataSection,
        max_age: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """True if the section has never been cached or is older than max_age."""
        row = location.section(section)
        return self._expired(row.cached_at if row is not None else None, section, max_age, now)

    def _expired(
        self,
        cached_at: Optional[datetime],
        section: DataSection,
        max_age: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        if cached_at is None:
            return True
        age = (now or self.clock()) - cached_at
        return age > (max_age if max_age is not None else self.max_age_for(section))

    def section_status(
        self,
        location: Location,
        section: DataSection,
        now: Optional[datetime] = None,
    ) -> SectionStatus:
        """Derive a job-facing status from the Location's cached section."""
        if section == DataSection.LOCATION:
            return SectionStatus.COMPLETE if location.boundary else SectionStatus.NOT_AVAILABLE

        row = location.section(section)
        if row is None:
            return SectionStatus.NOT_STARTED
        if row.last_outcome == FetchOutcome.ERROR:
            return SectionStatus.ERROR
        if row.payload is not None and row.cached_at is not None:
            if self.is_stale(location, section, now=now):
                return SectionStatus.PARTIAL
            return SectionStatus.COMPLETE
        if row.last_attempt_at is None:
            return SectionStatus.NOT_STARTED
        return SectionStatus.NOT_AVAILABLE

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, locator: Locator) -> Location:
        """Return the Location for a locator, creating it on first resolution.

        Raises:
            ValidationError: If the locator does not carry exactly one of
                address, title reference or coordinates
            NotResolvableError: If the address provider cannot geocode it
        """
        kinds = locator.provided()
        if len(kinds) != 1:
            raise ValidationError(
                "Exactly one of address, title_reference or coordinates is required"
                if not kinds else f"Ambiguous locator: {', '.join(kinds)} supplied"
            )

        if locator.coordinates is not None:
            coords = locator.coordinates
            if not are_valid_coordinates(coords.latitude, coords.longitude):
                raise ValidationError(f"Invalid coordinates: {coords.latitude}, {coords.longitude}")
            existing = await self.find_nearby(coords.latitude, coords.longitude)
            if existing:
                return existing[0]
            candidates = await self._geocode(self._address_provider().resolve(coords), "coordinates")

        elif locator.title_reference:
            title = locator.title_reference.strip().upper()
            async with self.unit_of_work() as session:
                existing = await LocationRepository(session).get_by_title_reference(title)
            if existing is not None:
                return existing
            candidates = await self._geocode(self._address_provider().resolve_title(title), title)

        else:
            text = locator.address.strip()
            async with self.unit_of_work() as session:
                existing = await LocationRepository(session).get_by_address_key(address_key(text))
            if existing is not None:
                return existing
            candidates = await self._geocode(self._address_provider().resolve(text), text)

        candidate = self._best_candidate(candidates)
        if candidate is None:
            raise NotResolvableError(f"Could not resolve location for {kinds[0]}")
        if locator.title_reference and not candidate.title_reference:
            candidate = candidate.model_copy(update={"title_reference": locator.title_reference.strip().upper()})
        return await self._find_or_create(candidate)

    def _address_provider(self):
        return self.providers.get(ProviderKey.ADDRESS)

    async def _geocode(self, call: Awaitable[List[AddressCandidate]], query: str) -> List[AddressCandidate]:
        try:
            return await asyncio.wait_for(call, timeout=self.settings.provider_timeout_seconds)
        except asyncio.TimeoutError as e:
            LOGGER.warning("Address resolution timed out", extra={"query": query})
            raise NotResolvableError("Address provider timed out", original_error=e)
        except ProviderError as e:
            LOGGER.warning("Address resolution failed", extra={"query": query, "error": str(e)})
            raise NotResolvableError(f"Address provider failed: {e.message}", original_error=e)

    def _best_candidate(self, candidates: List[AddressCandidate]) -> Optional[AddressCandidate]:
        eligible = [
            c for c in candidates
            if c.confidence >= self.settings.min_geocode_confidence
            and are_valid_coordinates(c.latitude, c.longitude)
        ]
        if not eligible:
            return None
        return max(eligible, key=lambda c: c.confidence)

    async def _find_or_create(self, candidate: AddressCandidate) -> Location:
        key = address_key(candidate.formatted_address)

        async with self._resolve_lock:
            try:
                async with self.unit_of_work() as session:
                    repo = LocationRepository(session)
                    existing = await self._match_candidate(repo, candidate, key)
                    if existing is not None:
                        return existing

                    street_number, street_name = candidate.street_number, candidate.street_name
                    if not street_name:
                        street_number, street_name = parse_street(candidate.formatted_address)

                    location = await repo.create_location(
                        address=candidate.formatted_address,
                        address_key=key,
                        title_reference=candidate.title_reference,
                        legal_description=candidate.legal_description,
                        valuation_reference=candidate.valuation_reference,
                        latitude=candidate.latitude,
                        longitude=candidate.longitude,
                        boundary=[p.model_dump() for p in candidate.boundary] if candidate.boundary else None,
                        site_area_m2=candidate.site_area_m2,
                        street_number=street_number,
                        street_name=street_name,
                        suburb=candidate.suburb,
                        city=candidate.city,
                        post_code=candidate.post_code,
                        territorial_authority=candidate.territorial_authority,
                        regional_council=candidate.regional_council,
                        source=candidate.source,
                        geocode_confidence=candidate.confidence,
                    )

            except PersistenceError as e:
                if not isinstance(e.original_error, IntegrityError):
                    raise
                # Another process inserted the same property first
                async with self.unit_of_work() as session:
                    existing = await LocationRepository(session).get_by_address_key(key)
                if existing is None:
                    raise
                return existing

        LOGGER.info(
            "Location created",
            extra={"location_id": str(location.id), "address": location.address, "source": location.source},
        )
        return location

    async def _match_candidate(
        self, repo: LocationRepository, candidate: AddressCandidate, key: str
    ) -> Optional[Location]:
        existing = await repo.get_by_address_key(key)
        if existing is None and candidate.title_reference:
            existing = await repo.get_by_title_reference(candidate.title_reference)
        if existing is None:
            nearby = await self._nearby(repo, candidate.latitude, candidate.longitude, self.settings.nearby_radius_m)
            existing = nearby[0] if nearby else None
        return existing

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_location(self, location_id: UUID) -> Location:
        async with self.unit_of_work() as session:
            location = await LocationRepository(session).get_by_id(location_id)
        if location is None:
            raise NotFoundError("Location", location_id)
        return location

    async def find_nearby(
        self, lat: float, lon: float, radius_m: Optional[float] = None
    ) -> List[Location]:
        """Locations within radius_m of a point, nearest first."""
        if not are_valid_coordinates(lat, lon):
            raise ValidationError(f"Invalid coordinates: {lat}, {lon}")
        async with self.unit_of_work() as session:
            return await self._nearby(
                LocationRepository(session), lat, lon,
                radius_m if radius_m is not None else self.settings.nearby_radius_m,
            )

    @staticmethod
    async def _nearby(repo: LocationRepository, lat: float, lon: float, radius_m: float) -> List[Location]:
        in_box = await repo.find_in_bounds(*bounding_box(lat, lon, radius_m))
        scored = [
            (haversine_distance(lat, lon, loc.latitude, loc.longitude), loc)
            for loc in in_box
        ]
        return [loc for distance, loc in sorted(scored, key=lambda item: item[0]) if distance <= radius_m]

    async def list_locations(self, skip: int = 0, limit: int = 50) -> List[LocationSummary]:
        async with self.unit_of_work() as session:
            rows = await LocationRepository(session).list_summaries(skip=skip, limit=limit)
        return [
            LocationSummary(
                id=location.id,
                address=location.address,
                short_address=location.short_address(),
                title_reference=location.title_reference,
                latitude=location.latitude,
                longitude=location.longitude,
                job_count=job_count or 0,
                last_job_date=last_job_date,
                last_refreshed_at=location.last_refreshed_at,
                created_at=location.created_at,
            )
            for location, job_count, last_job_date in rows
        ]

    async def autocomplete(self, partial: str, limit: int = 10) -> List[AddressSuggestion]:
        if len(partial.strip()) < 2:
            return []
        return await asyncio.wait_for(
            self._address_provider().autocomplete(partial.strip(), limit),
            timeout=self.settings.provider_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(
        self,
        location_id: UUID,
        sections: Optional[Iterable[Any]] = None,
        force: bool = False,
        exclude: Optional[Iterable[Any]] = None,
    ) -> Location:
        """Refresh cached sections of a Location from their providers.

        Only stale sections are fetched unless ``force`` is set. Provider
        failures are recorded against the section and never raised.
        Concurrent refreshes of one section wait for each other, and a
        section another caller has just fetched is not fetched again.

        Args:
            location_id: Location to refresh
            sections: Section names to refresh, defaults to every cached section
            force: Refresh even sections that are still fresh
            exclude: Section names to skip, e.g. ones already attempted by
                the caller in the same operation

        Returns:
            The reloaded Location

        Raises:
            ValidationError: If a section name is unknown
            NotFoundError: If the Location does not exist
        """
        requested = self.requested_sections(sections)
        if exclude is not None:
            skipped = set(self.requested_sections(exclude))
            requested = [s for s in requested if s not in skipped]
        location = await self.get_location(location_id)

        now = self.clock()
        due = [s for s in requested if force or self.is_stale(location, s, now=now)]
        target = RefreshTarget(
            location_id=location.id,
            latitude=location.latitude,
            longitude=location.longitude,
            title_reference=location.title_reference,
        )

        if due:
            LOGGER.info(
                "Refreshing location sections",
                extra={"location_id": str(location_id), "sections": [s.value for s in due], "force": force},
            )
            await asyncio.gather(*(self._refresh_section(target, section, force) for section in due))
            async with self.unit_of_work() as session:
                await LocationRepository(session).mark_refreshed(location_id, self.clock())

        async with self.unit_of_work() as session:
            refreshed = await LocationRepository(session).get_fresh(location_id)
        if refreshed is None:
            raise NotFoundError("Location", location_id)
        return refreshed

    @staticmethod
    def requested_sections(sections: Optional[Iterable[Any]]) -> List[DataSection]:
        if sections is None:
            return list(CACHED_SECTIONS)
        try:
            parsed = parse_sections(sections)
        except ValueError as e:
            raise ValidationError(f"Unknown section: {e}", original_error=e)
        return [s for s in parsed if s in CACHED_SECTIONS]

    async def _refresh_section(self, target: RefreshTarget, section: DataSection, force: bool) -> None:
        async with self._section_locks.hold((target.location_id, section)):
            if not force:
                # A concurrent refresh may have filled the section while we waited
                async with self.unit_of_work() as session:
                    row = await LocationRepository(session).get_section(target.location_id, section)
                if row is not None and not self._expired(row.cached_at, section):
                    LOGGER.debug(
                        "Section already refreshed",
                        extra={"location_id": str(target.location_id), "section": section.value},
                    )
                    return
            await self._fetch_and_record(target, section)

    async def _fetch_and_record(self, target: RefreshTarget, section: DataSection) -> None:
        timeout = self.settings.provider_timeout_seconds
        outcome = FetchOutcome.ERROR
        error: Optional[str] = None
        payload: Optional[Dict[str, Any]] = None

        try:
            payload = await asyncio.wait_for(self._fetchers[section](target), timeout=timeout)
            if payload is None:
                outcome, error = FetchOutcome.NOT_AVAILABLE, "Provider returned no data"
            else:
                outcome = FetchOutcome.OK
        except asyncio.TimeoutError:
            error = f"Provider timed out after {timeout:g}s"
        except ProviderNotAvailableError as e:
            outcome, error = FetchOutcome.NOT_AVAILABLE, e.message
        except ProviderError as e:
            error = e.message
        except Exception as e:
            LOGGER.warning(
                "Unexpected provider failure",
                exc_info=True,
                extra={"location_id": str(target.location_id), "section": section.value},
            )
            error = f"{type(e).__name__}: {e}"

        finished = self.clock()
        async with self.unit_of_work() as session:
            repo = LocationRepository(session)
            if outcome == FetchOutcome.OK:
                await repo.record_section_success(target.location_id, section, payload, finished)
            else:
                await repo.record_section_failure(target.location_id, section, outcome, error, finished)

        if outcome == FetchOutcome.ERROR:
            LOGGER.warning(
                "Section refresh failed",
                extra={"location_id": str(target.location_id), "section": section.value, "error": error},
            )

    # ------------------------------------------------------------------
    # Section fetchers
    # ------------------------------------------------------------------

    def _regional(self, target: RefreshTarget):
        provider = self.providers.regional.select(target.latitude, target.longitude)
        if provider is None:
            raise ProviderNotAvailableError("council", "No regional provider covers this location")
        return provider

    async def _fetch_zoning(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        zoning = await self._regional(target).get_zoning_data(target.latitude, target.longitude)
        return zoning.model_dump(mode="json") if zoning else None

    async def _fetch_hazards(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        regional = self.providers.regional.select(target.latitude, target.longitude)
        seismic_provider = self.providers.get(ProviderKey.HAZARD)
        since = date(self.clock().year - self.settings.hazard_event_since_years, 1, 1)

        async def regional_hazards():
            if regional is None:
                return None
            return await regional.get_hazard_data(target.latitude, target.longitude)

        regional_data, seismic, events = await asyncio.gather(
            regional_hazards(),
            seismic_provider.hazard_for(target.latitude, target.longitude),
            seismic_provider.historical_events(
                target.latitude, target.longitude, self.settings.hazard_event_radius_km, since
            ),
        )
        if regional_data is None and seismic is None and not events:
            return None

        hazards = HazardData(seismic=seismic, historical_events=events)
        sources: List[DataSource] = []
        if regional_data is not None:
            hazards = hazards.model_copy(update={
                "flooding": regional_data.flooding,
                "liquefaction": regional_data.liquefaction,
                "coastal_erosion": regional_data.coastal_erosion,
                "coastal_inundation": regional_data.coastal_inundation,
                "slope_instability": regional_data.slope_instability,
                "contamination": regional_data.contamination,
            })
            if regional_data.source:
                sources.append(regional_data.source)
        if seismic is not None and seismic.source:
            sources.append(seismic.source)

        hazards = hazards.model_copy(update={"all_hazards": summarize_hazards(hazards), "sources": sources})
        return hazards.model_dump(mode="json")

    async def _fetch_geotech(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        provider = self.providers.get(ProviderKey.GEOTECH)
        investigations = await provider.nearby_investigations(
            target.latitude, target.longitude, self.settings.geotech_radius_m
        )
        boreholes = [i for i in investigations if i.kind == "borehole"]
        data = GeotechnicalData(
            investigations=sorted(investigations, key=lambda i: i.distance_m),
            soil_description=boreholes[0].description if boreholes else None,
            investigation_required=not boreholes,
            recommended_investigation=(
                None if boreholes
                else "No boreholes nearby; site-specific geotechnical investigation recommended"
            ),
            source=DataSource(name=provider.name, retrieved_at=self.clock()),
        )
        return data.model_dump(mode="json")

    async def _fetch_infrastructure(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        infrastructure = await self._regional(target).get_infrastructure_data(target.latitude, target.longitude)
        return infrastructure.model_dump(mode="json") if infrastructure else None

    async def _fetch_climate(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        provider = self.providers.get(ProviderKey.CLIMATE)
        rainfall, wind = await asyncio.gather(
            provider.rainfall(target.latitude, target.longitude),
            provider.wind_zone(target.latitude, target.longitude),
        )
        if rainfall is None and wind is None:
            return None
        climate = ClimateData(
            wind=wind,
            rainfall=rainfall,
            sources=[DataSource(name=provider.name, retrieved_at=self.clock())],
        )
        return climate.model_dump(mode="json")

    async def _fetch_land(self, target: RefreshTarget) -> Optional[Dict[str, Any]]:
        if not target.title_reference:
            raise ProviderNotAvailableError("land", "No title reference for this location")
        land = await self.providers.get(ProviderKey.LAND).title_data(target.title_reference)
        return land.model_dump(mode="json") if land else None


LIQUEFACTION_SEVERITY = {"TC1": "Low", "TC2": "Medium", "TC3": "High"}


def summarize_hazards(hazards: HazardData) -> List[HazardSummary]:
    """One line per notable hazard, for reports and data gap hints."""
    summary: List[HazardSummary] = []
    if hazards.liquefaction is not None:
        summary.append(HazardSummary(
            hazard_type="Liquefaction",
            severity=LIQUEFACTION_SEVERITY.get(hazards.liquefaction.category, "Medium"),
            description=f"{hazards.liquefaction.category}: {hazards.liquefaction.description}".rstrip(": "),
            action="Specific geotechnical assessment" if hazards.liquefaction.category == "TC3" else None,
        ))
    if hazards.flooding is not None:
        summary.append(HazardSummary(
            hazard_type="Flooding",
            severity="High" if hazards.flooding.requires_flood_assessment else "Medium",
            description=hazards.flooding.description or hazards.flooding.zone,
        ))
    if hazards.seismic is not None and hazards.seismic.zone_factor is not None:
        summary.append(HazardSummary(
            hazard_type="Seismic",
            severity="High" if hazards.seismic.zone_factor >= 0.3 else "Medium",
            description=f"Zone factor Z={hazards.seismic.zone_factor}",
        ))
    if hazards.contamination is not None and (hazards.contamination.on_hail or hazards.contamination.on_llur):
        summary.append(HazardSummary(
            hazard_type="Contamination",
            severity="High",
            description=hazards.contamination.description or "Listed on HAIL/LLUR",
            action="Preliminary site investigation",
        ))
    return summary
