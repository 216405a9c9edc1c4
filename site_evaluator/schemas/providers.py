"""Payload models returned by external data providers.

Each cached section stores the JSON dump of one of the ``*Data`` models
below on the Location.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DataSource(BaseModel):
    """Provenance of a provider payload."""

    name: str
    url: Optional[str] = None
    retrieved_at: Optional[datetime] = None
    is_estimate: bool = False


# Zoning
class PlanningOverlay(BaseModel):
    name: str
    type: str
    description: str = ""
    rules_link: Optional[str] = None


class ZoningData(BaseModel):
    zone: str
    zone_code: str = ""
    zone_description: str = ""
    district_plan: str = ""
    max_height: Optional[float] = None
    max_coverage: Optional[float] = None
    min_front_setback: Optional[float] = None
    min_side_setback: Optional[float] = None
    max_impervious: Optional[float] = None
    density_standard: Optional[str] = None
    max_units_per_site: Optional[int] = None
    min_site_area: Optional[float] = None
    permitted_activities: List[str] = Field(default_factory=list)
    restricted_discretionary: List[str] = Field(default_factory=list)
    overlays: List[PlanningOverlay] = Field(default_factory=list)
    district_plan_link: Optional[str] = None
    source: Optional[DataSource] = None


# Hazards
class FloodHazard(BaseModel):
    zone: str
    description: str = ""
    flood_level: Optional[str] = None
    floor_level_requirement: Optional[float] = None
    requires_flood_assessment: bool = False


class LiquefactionHazard(BaseModel):
    category: str = Field(description="TC1, TC2 or TC3")
    description: str = ""
    foundation_guidance: Optional[str] = None
    requires_geotech_assessment: bool = False


class ContaminationStatus(BaseModel):
    on_hail: bool = False
    on_llur: bool = False
    status: Optional[str] = None
    description: Optional[str] = None


class RegionalHazardData(BaseModel):
    """Hazards mapped by the governing council."""

    flooding: Optional[FloodHazard] = None
    liquefaction: Optional[LiquefactionHazard] = None
    coastal_erosion: bool = False
    coastal_inundation: bool = False
    slope_instability: bool = False
    contamination: Optional[ContaminationStatus] = None
    source: Optional[DataSource] = None


class ActiveFault(BaseModel):
    name: str
    distance_km: float
    recurrence_interval: Optional[str] = None
    fault_type: Optional[str] = None
    slip_rate: Optional[str] = None
    max_magnitude: Optional[float] = None


class SeismicHazard(BaseModel):
    zone: str
    zone_factor: Optional[float] = Field(default=None, description="NZS 1170.5 Z value")
    site_class: Optional[str] = None
    near_fault_factor: Optional[float] = None
    pga: Optional[float] = None
    design_standard: Optional[str] = "NZS 1170.5:2004"
    nearby_faults: List[ActiveFault] = Field(default_factory=list)
    source: Optional[DataSource] = None


class HistoricalEvent(BaseModel):
    name: str
    event_date: date
    magnitude: Optional[float] = None
    distance_km: Optional[float] = None
    description: Optional[str] = None


class HazardSummary(BaseModel):
    hazard_type: str
    severity: str
    description: str
    action: Optional[str] = None


class HazardData(BaseModel):
    flooding: Optional[FloodHazard] = None
    liquefaction: Optional[LiquefactionHazard] = None
    seismic: Optional[SeismicHazard] = None
    coastal_erosion: bool = False
    coastal_inundation: bool = False
    slope_instability: bool = False
    contamination: Optional[ContaminationStatus] = None
    historical_events: List[HistoricalEvent] = Field(default_factory=list)
    all_hazards: List[HazardSummary] = Field(default_factory=list)
    sources: List[DataSource] = Field(default_factory=list)


# Geotechnical
class SoilLayer(BaseModel):
    top_depth: float
    bottom_depth: float
    description: str
    soil_type: Optional[str] = None


class GeotechInvestigation(BaseModel):
    """A borehole, CPT or report found near the property."""

    id: str
    kind: str = Field(description="borehole, cpt or report")
    distance_m: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    depth_m: Optional[float] = None
    investigated_on: Optional[date] = None
    description: Optional[str] = None
    source_url: Optional[str] = None
    soil_layers: List[SoilLayer] = Field(default_factory=list)


class GeotechnicalData(BaseModel):
    site_class: Optional[str] = None
    site_class_source: Optional[str] = None
    investigations: List[GeotechInvestigation] = Field(default_factory=list)
    soil_description: Optional[str] = None
    estimated_groundwater_level: Optional[float] = None
    foundation_recommendation: Optional[str] = None
    investigation_required: bool = False
    recommended_investigation: Optional[str] = None
    source: Optional[DataSource] = None


# Infrastructure
class UtilityService(BaseModel):
    available: bool
    provider: Optional[str] = None
    main_size: Optional[str] = None
    distance_to_main_m: Optional[float] = None
    notes: Optional[str] = None


class RoadAccess(BaseModel):
    road_name: Optional[str] = None
    classification: Optional[str] = None
    owner: Optional[str] = None
    speed_limit: Optional[str] = None


class InfrastructureData(BaseModel):
    water: Optional[UtilityService] = None
    wastewater: Optional[UtilityService] = None
    stormwater: Optional[UtilityService] = None
    power: Optional[UtilityService] = None
    fibre: Optional[UtilityService] = None
    gas: Optional[UtilityService] = None
    roads: Optional[RoadAccess] = None
    source: Optional[DataSource] = None


# Climate
class RainfallData(BaseModel):
    annual_mean_mm: Optional[float] = None
    i10_10: Optional[float] = Field(default=None, description="10-year 10-minute intensity mm/hr")
    i10_60: Optional[float] = None
    i100_10: Optional[float] = None
    i100_60: Optional[float] = None
    hirds_station: Optional[str] = None
    climate_change_factors: Optional[Dict[str, float]] = None


class WindZone(BaseModel):
    zone: str = Field(description="Low, Medium, High, Very High or Extra High")
    basic_wind_speed: Optional[float] = None
    terrain_category: Optional[str] = None
    predominant_direction: Optional[str] = None


class ClimateData(BaseModel):
    wind: Optional[WindZone] = None
    rainfall: Optional[RainfallData] = None
    climate_zone: Optional[str] = None
    sources: List[DataSource] = Field(default_factory=list)


# Land
class Owner(BaseModel):
    name: str
    share: Optional[str] = None


class Encumbrance(BaseModel):
    type: str
    description: Optional[str] = None
    in_favour_of: Optional[str] = None
    document_reference: Optional[str] = None


class LandData(BaseModel):
    title_reference: str
    title_type: Optional[str] = None
    title_status: Optional[str] = None
    title_date: Optional[date] = None
    legal_description: Optional[str] = None
    lot_number: Optional[str] = None
    dp_number: Optional[str] = None
    area_m2: Optional[float] = None
    owners: List[Owner] = Field(default_factory=list)
    easements: List[Encumbrance] = Field(default_factory=list)
    covenants: List[Encumbrance] = Field(default_factory=list)
    other_encumbrances: List[Encumbrance] = Field(default_factory=list)
    source: Optional[DataSource] = None
