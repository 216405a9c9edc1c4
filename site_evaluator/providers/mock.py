"""Deterministic providers backed by sample New Zealand properties.

Used in development and in ``PROVIDER_MODE=mock`` deployments where no
provider API keys are configured. Every provider answers from the same
sample set so that a resolved sample address has data in every section.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple, Union

from site_evaluator.providers.base import (
    AddressResolutionProvider,
    ClimateDataProvider,
    GeotechDataProvider,
    HazardDataProvider,
    LandDataProvider,
    RegionalZoningProvider,
)
from site_evaluator.schemas.location import AddressCandidate, AddressSuggestion, Coordinate
from site_evaluator.schemas.providers import (
    ActiveFault,
    ContaminationStatus,
    DataSource,
    FloodHazard,
    GeotechInvestigation,
    HistoricalEvent,
    InfrastructureData,
    LandData,
    LiquefactionHazard,
    Owner,
    RainfallData,
    RegionalHazardData,
    RoadAccess,
    SeismicHazard,
    SoilLayer,
    UtilityService,
    WindZone,
    ZoningData,
)
from site_evaluator.utils.geo import haversine_distance

MOCK_SOURCE = "Mock Data (Development Mode)"

# Sample lookups by coordinate match the nearest property within this distance.
SAMPLE_MATCH_RADIUS_M = 2000.0
REVERSE_GEOCODE_RADIUS_M = 100.0


@dataclass(frozen=True)
class SampleProperty:
    full_address: str
    street_number: str
    street_name: str
    suburb: str
    city: str
    post_code: str
    latitude: float
    longitude: float
    territorial_authority: str
    regional_council: str
    legal_description: str
    title_reference: str
    area_m2: float
    zone: str
    zone_code: str = ""
    max_height: Optional[float] = None
    max_coverage: Optional[float] = None
    liquefaction: str = "TC1"
    flood_zone: Optional[str] = None
    flood_notes: Optional[str] = None
    seismic_zone: str = "Medium"
    wind_zone: str = "Medium"
    site_class: str = "C"
    groundwater_depth: Optional[float] = None
    soil_description: Optional[str] = None
    stormwater_notes: Optional[str] = None
    valuation_reference: Optional[str] = None

    def boundary(self, half_side_m: float = 7.0) -> List[Coordinate]:
        d_lat = half_side_m / 111320.0
        d_lon = half_side_m / 80000.0
        return [
            Coordinate(latitude=self.latitude - d_lat, longitude=self.longitude - d_lon),
            Coordinate(latitude=self.latitude - d_lat, longitude=self.longitude + d_lon),
            Coordinate(latitude=self.latitude + d_lat, longitude=self.longitude + d_lon),
            Coordinate(latitude=self.latitude + d_lat, longitude=self.longitude - d_lon),
        ]


SAMPLE_PROPERTIES: Tuple[SampleProperty, ...] = (
    SampleProperty(
        full_address="353 Barbadoes Street, Central City, Christchurch 8011",
        street_number="353",
        street_name="Barbadoes Street",
        suburb="Central City",
        city="Christchurch",
        post_code="8011",
        latitude=-43.5270,
        longitude=172.6420,
        territorial_authority="Christchurch City Council",
        regional_council="Environment Canterbury",
        legal_description="Pt Sec 509 Christchurch Town",
        title_reference="CB32A/891",
        area_m2=177,
        zone="Central City Residential",
        zone_code="CCR",
        max_height=14.0,
        max_coverage=50,
        liquefaction="TC2",
        flood_zone="Low-Moderate",
        flood_notes="Localised ponding possible along parts of Barbadoes Street",
        seismic_zone="High",
        wind_zone="Medium-High",
        site_class="D",
        groundwater_depth=1.5,
        soil_description="Silty sands and gravels with variable sands and occasional silt/peat lenses",
        stormwater_notes="On-site attenuation required due to shallow groundwater and limited soakage",
        valuation_reference="22710 21300",
    ),
    SampleProperty(
        full_address="90 Armagh Street, Christchurch Central, Christchurch 8011",
        street_number="90",
        street_name="Armagh Street",
        suburb="Christchurch Central",
        city="Christchurch",
        post_code="8011",
        latitude=-43.5301,
        longitude=172.6353,
        territorial_authority="Christchurch City Council",
        regional_council="Environment Canterbury",
        legal_description="Lot 1 DP 12345",
        title_reference="CB45A/123",
        area_m2=450,
        zone="Commercial Core",
        zone_code="CC",
        liquefaction="TC2",
        seismic_zone="High",
        site_class="D",
    ),
    SampleProperty(
        full_address="1 Queen Street, Auckland CBD, Auckland 1010",
        street_number="1",
        street_name="Queen Street",
        suburb="Auckland CBD",
        city="Auckland",
        post_code="1010",
        latitude=-36.8485,
        longitude=174.7633,
        territorial_authority="Auckland Council",
        regional_council="Auckland Council",
        legal_description="Lot 1 DP 99999",
        title_reference="NA123/789",
        area_m2=820,
        zone="Business - City Centre",
        zone_code="BCC",
        liquefaction="TC1",
        seismic_zone="Medium",
        site_class="C",
    ),
    SampleProperty(
        full_address="1 Willis Street, Wellington Central, Wellington 6011",
        street_number="1",
        street_name="Willis Street",
        suburb="Wellington Central",
        city="Wellington",
        post_code="6011",
        latitude=-41.2865,
        longitude=174.7762,
        territorial_authority="Wellington City Council",
        regional_council="Greater Wellington Regional Council",
        legal_description="Lot 5 DP 33333",
        title_reference="WN45C/321",
        area_m2=640,
        zone="Central Area",
        zone_code="CA",
        liquefaction="TC1",
        seismic_zone="Very High",
        wind_zone="Very High",
        site_class="C",
    ),
)

ZONE_FACTORS = {"Christchurch": 0.3, "Auckland": 0.13, "Wellington": 0.4}

FAULTS = {
    "Christchurch": [
        ActiveFault(name="Greendale Fault", distance_km=28.0, fault_type="Dextral strike-slip", max_magnitude=7.1),
        ActiveFault(name="Port Hills Fault", distance_km=6.5, fault_type="Oblique reverse", max_magnitude=6.2),
    ],
    "Wellington": [
        ActiveFault(
            name="Wellington Fault",
            distance_km=0.8,
            recurrence_interval="500-800 years",
            fault_type="Dextral strike-slip",
            slip_rate="6-7 mm/year",
            max_magnitude=7.5,
        ),
    ],
    "Auckland": [],
}

EVENTS = {
    "Christchurch": [
        HistoricalEvent(name="Darfield earthquake", event_date=date(2010, 9, 4), magnitude=7.1, distance_km=37.0),
        HistoricalEvent(name="Christchurch earthquake", event_date=date(2011, 2, 22), magnitude=6.2, distance_km=6.7),
    ],
    "Wellington": [
        HistoricalEvent(name="Cook Strait earthquake", event_date=date(2013, 7, 21), magnitude=6.5, distance_km=57.0),
        HistoricalEvent(name="Kaikoura earthquake", event_date=date(2016, 11, 14), magnitude=7.8, distance_km=190.0),
    ],
    "Auckland": [],
}

RAINFALL = {
    "Christchurch": RainfallData(annual_mean_mm=618, i10_10=62, i10_60=21, i100_10=102, i100_60=35, hirds_station="Christchurch Aero"),
    "Auckland": RainfallData(annual_mean_mm=1210, i10_10=98, i10_60=41, i100_10=152, i100_60=63, hirds_station="Auckland Aero"),
    "Wellington": RainfallData(annual_mean_mm=1249, i10_10=84, i10_60=30, i100_10=131, i100_60=47, hirds_station="Kelburn"),
}


def _source(name: str = MOCK_SOURCE) -> DataSource:
    return DataSource(name=name, retrieved_at=datetime.now(timezone.utc), is_estimate=True)


def _normalise(text: str) -> str:
    return " ".join(text.lower().replace(",", " ").split())


def nearest_sample(lat: float, lon: float, radius_m: float = SAMPLE_MATCH_RADIUS_M) -> Optional[SampleProperty]:
    best: Optional[Tuple[float, SampleProperty]] = None
    for sample in SAMPLE_PROPERTIES:
        distance = haversine_distance(lat, lon, sample.latitude, sample.longitude)
        if distance <= radius_m and (best is None or distance < best[0]):
            best = (distance, sample)
    return best[1] if best else None


def find_sample_by_address(text: str) -> Optional[SampleProperty]:
    query = _normalise(text)
    if len(query) < 3:
        return None
    for sample in SAMPLE_PROPERTIES:
        full = _normalise(sample.full_address)
        street = _normalise(f"{sample.street_number} {sample.street_name}")
        if query in full or street in query:
            return sample
    return None


def to_candidate(sample: SampleProperty, confidence: int = 95) -> AddressCandidate:
    return AddressCandidate(
        formatted_address=sample.full_address,
        latitude=sample.latitude,
        longitude=sample.longitude,
        confidence=confidence,
        street_number=sample.street_number,
        street_name=sample.street_name,
        suburb=sample.suburb,
        city=sample.city,
        post_code=sample.post_code,
        territorial_authority=sample.territorial_authority,
        regional_council=sample.regional_council,
        title_reference=sample.title_reference,
        legal_description=sample.legal_description,
        valuation_reference=sample.valuation_reference,
        boundary=sample.boundary(),
        site_area_m2=sample.area_m2,
        source="mock",
    )


class MockAddressProvider(AddressResolutionProvider):
    name = "mock-address"

    async def resolve(self, query: Union[str, Coordinate]) -> List[AddressCandidate]:
        if isinstance(query, Coordinate):
            sample = nearest_sample(query.latitude, query.longitude, REVERSE_GEOCODE_RADIUS_M)
            return [to_candidate(sample, confidence=90)] if sample else []
        sample = find_sample_by_address(query)
        return [to_candidate(sample)] if sample else []

    async def resolve_title(self, title_reference: str) -> List[AddressCandidate]:
        wanted = title_reference.strip().upper()
        return [to_candidate(s, confidence=100) for s in SAMPLE_PROPERTIES if s.title_reference == wanted]

    async def autocomplete(self, partial: str, limit: int = 10) -> List[AddressSuggestion]:
        query = _normalise(partial)
        if len(query) < 2:
            return []
        suggestions = []
        for sample in SAMPLE_PROPERTIES:
            full = _normalise(sample.full_address)
            if query in full:
                suggestions.append(
                    AddressSuggestion(
                        text=f"{sample.street_number} {sample.street_name}, {sample.suburb}",
                        full_address=sample.full_address,
                        latitude=sample.latitude,
                        longitude=sample.longitude,
                        score=1.0 if full.startswith(query) else 0.5,
                    )
                )
        suggestions.sort(key=lambda s: -s.score)
        return suggestions[:limit]


class MockHazardProvider(HazardDataProvider):
    name = "mock-gns"

    async def hazard_for(self, lat: float, lon: float) -> Optional[SeismicHazard]:
        sample = nearest_sample(lat, lon)
        if sample is None:
            return None
        wellington = sample.city == "Wellington"
        return SeismicHazard(
            zone=sample.seismic_zone,
            zone_factor=ZONE_FACTORS.get(sample.city),
            site_class=sample.site_class,
            near_fault_factor=1.1 if wellington else 1.0,
            nearby_faults=FAULTS.get(sample.city, []),
            source=_source(),
        )

    async def historical_events(
        self, lat: float, lon: float, radius_km: float, since: date
    ) -> List[HistoricalEvent]:
        sample = nearest_sample(lat, lon)
        if sample is None:
            return []
        return [
            e for e in EVENTS.get(sample.city, [])
            if e.event_date >= since and (e.distance_km is None or e.distance_km <= radius_km)
        ]


class MockGeotechProvider(GeotechDataProvider):
    name = "mock-nzgd"

    async def nearby_investigations(
        self, lat: float, lon: float, radius_m: float
    ) -> List[GeotechInvestigation]:
        sample = nearest_sample(lat, lon)
        if sample is None or sample.city != "Christchurch":
            return []
        investigations = [
            GeotechInvestigation(
                id="BH_24117",
                kind="borehole",
                distance_m=120.0,
                latitude=sample.latitude + 0.001,
                longitude=sample.longitude,
                depth_m=15.0,
                investigated_on=date(2012, 5, 14),
                description=sample.soil_description,
                soil_layers=[
                    SoilLayer(top_depth=0.0, bottom_depth=1.2, description="Fill", soil_type="Fill"),
                    SoilLayer(top_depth=1.2, bottom_depth=6.0, description="Silty fine sand", soil_type="SM"),
                    SoilLayer(top_depth=6.0, bottom_depth=15.0, description="Sandy gravel", soil_type="GW"),
                ],
            ),
            GeotechInvestigation(id="CPT_88231", kind="cpt", distance_m=310.0, depth_m=12.5),
        ]
        return [i for i in investigations if i.distance_m <= radius_m]


class MockClimateProvider(ClimateDataProvider):
    name = "mock-niwa"

    async def rainfall(self, lat: float, lon: float) -> Optional[RainfallData]:
        sample = nearest_sample(lat, lon)
        return RAINFALL.get(sample.city) if sample else None

    async def wind_zone(self, lat: float, lon: float) -> Optional[WindZone]:
        sample = nearest_sample(lat, lon)
        if sample is None:
            return None
        return WindZone(zone=sample.wind_zone, terrain_category="TC3", predominant_direction="NE")


class MockLandProvider(LandDataProvider):
    name = "mock-landonline"

    async def title_data(self, title_reference: str) -> Optional[LandData]:
        wanted = title_reference.strip().upper()
        for sample in SAMPLE_PROPERTIES:
            if sample.title_reference == wanted:
                return LandData(
                    title_reference=sample.title_reference,
                    title_type="Freehold",
                    title_status="Live",
                    legal_description=sample.legal_description,
                    area_m2=sample.area_m2,
                    owners=[Owner(name="Mock Owner", share="1/1")],
                    source=_source(),
                )
        return None


class MockCouncilProvider(RegionalZoningProvider):
    """Council provider answering from samples inside a bounding box."""

    def __init__(self, name: str, lat_range: Tuple[float, float], lon_range: Tuple[float, float]):
        self.name = name
        self.lat_range = lat_range
        self.lon_range = lon_range

    def supports_region(self, lat: float, lon: float) -> bool:
        return (
            self.lat_range[0] <= lat <= self.lat_range[1]
            and self.lon_range[0] <= lon <= self.lon_range[1]
        )

    def _sample(self, lat: float, lon: float) -> Optional[SampleProperty]:
        sample = nearest_sample(lat, lon)
        if sample is None or not self.supports_region(sample.latitude, sample.longitude):
            return None
        return sample

    async def get_zoning_data(self, lat: float, lon: float) -> Optional[ZoningData]:
        sample = self._sample(lat, lon)
        if sample is None:
            return None
        return ZoningData(
            zone=sample.zone,
            zone_code=sample.zone_code,
            district_plan=f"{sample.city} District Plan",
            max_height=sample.max_height,
            max_coverage=sample.max_coverage,
            source=_source(self.name),
        )

    async def get_hazard_data(self, lat: float, lon: float) -> Optional[RegionalHazardData]:
        sample = self._sample(lat, lon)
        if sample is None:
            return None
        return RegionalHazardData(
            flooding=FloodHazard(zone=sample.flood_zone, description=sample.flood_notes or "")
            if sample.flood_zone else None,
            liquefaction=LiquefactionHazard(
                category=sample.liquefaction,
                description=LIQUEFACTION_DESCRIPTIONS.get(sample.liquefaction, ""),
                requires_geotech_assessment=sample.liquefaction == "TC3",
            ),
            contamination=ContaminationStatus(on_hail=False, on_llur=False, status="Not listed"),
            source=_source(self.name),
        )

    async def get_infrastructure_data(self, lat: float, lon: float) -> Optional[InfrastructureData]:
        sample = self._sample(lat, lon)
        if sample is None:
            return None
        council = sample.territorial_authority
        return InfrastructureData(
            water=UtilityService(available=True, provider=council, main_size="100mm"),
            wastewater=UtilityService(available=True, provider=council, main_size="150mm"),
            stormwater=UtilityService(available=True, provider=council, notes=sample.stormwater_notes),
            power=UtilityService(available=True),
            fibre=UtilityService(available=True, provider="Chorus"),
            roads=RoadAccess(road_name=sample.street_name, classification="Local", owner=council, speed_limit="50"),
            source=_source(self.name),
        )


LIQUEFACTION_DESCRIPTIONS = {
    "TC1": "Liquefaction damage is unlikely in future large earthquakes",
    "TC2": "Liquefaction damage is possible in future large earthquakes",
    "TC3": "Liquefaction damage is possible in future significant earthquakes",
}

COUNCIL_REGIONS = (
    ("Christchurch City Council", (-43.65, -43.40), (172.45, 172.80)),
    ("Auckland Council", (-37.4, -36.4), (174.4, 175.4)),
    ("Wellington City Council", (-41.4, -41.2), (174.7, 174.9)),
)


def mock_council_providers() -> List[MockCouncilProvider]:
    return [MockCouncilProvider(name, lat_range, lon_range) for name, lat_range, lon_range in COUNCIL_REGIONS]
