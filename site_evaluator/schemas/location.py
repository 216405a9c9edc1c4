"""Location request and response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from site_evaluator.schemas.enums import FetchOutcome


class Coordinate(BaseModel):
    latitude: float
    longitude: float


class Locator(BaseModel):
    """Identifies a property by exactly one of address, title reference or coordinates.

    The exactly-one rule is enforced by the location cache so that a bad
    locator is reported as a domain validation error.
    """

    address: Optional[str] = Field(default=None, description="Free-text street address")
    title_reference: Optional[str] = Field(default=None, description="Certificate of title, e.g. CB32A/891")
    coordinates: Optional[Coordinate] = None

    def provided(self) -> List[str]:
        """Names of the locator fields that carry a value."""
        kinds = []
        if self.address and self.address.strip():
            kinds.append("address")
        if self.title_reference and self.title_reference.strip():
            kinds.append("title_reference")
        if self.coordinates is not None:
            kinds.append("coordinates")
        return kinds


class AddressCandidate(BaseModel):
    """A geocoded property candidate returned by an address provider."""

    formatted_address: str
    latitude: float
    longitude: float
    confidence: int = Field(default=100, ge=0, le=100)
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    suburb: Optional[str] = None
    city: Optional[str] = None
    post_code: Optional[str] = None
    territorial_authority: Optional[str] = None
    regional_council: Optional[str] = None
    title_reference: Optional[str] = None
    legal_description: Optional[str] = None
    valuation_reference: Optional[str] = None
    boundary: Optional[List[Coordinate]] = None
    site_area_m2: Optional[float] = None
    source: str = "unknown"


class AddressSuggestion(BaseModel):
    text: str
    full_address: str
    address_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    score: float = 0.0


class CachedSectionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payload: Optional[Dict[str, Any]] = None
    cached_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    last_outcome: Optional[FetchOutcome] = None
    last_error: Optional[str] = None


class LocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    address: str
    title_reference: Optional[str] = None
    legal_description: Optional[str] = None
    valuation_reference: Optional[str] = None
    latitude: float
    longitude: float
    boundary: Optional[List[Coordinate]] = None
    site_area_m2: Optional[float] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    suburb: Optional[str] = None
    city: Optional[str] = None
    post_code: Optional[str] = None
    territorial_authority: Optional[str] = None
    regional_council: Optional[str] = None
    source: str
    geocode_confidence: Optional[int] = None
    created_at: datetime
    last_refreshed_at: Optional[datetime] = None
    sections: Dict[str, CachedSectionRead] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, location) -> "LocationRead":
        data = {
            name: getattr(location, name)
            for name in cls.model_fields
            if name != "sections"
        }
        data["sections"] = {
            row.section.value: CachedSectionRead.model_validate(row) for row in location.sections
        }
        return cls.model_validate(data)


class LocationSummary(BaseModel):
    id: UUID
    address: str
    short_address: str
    title_reference: Optional[str] = None
    latitude: float
    longitude: float
    job_count: int = 0
    last_job_date: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None
    created_at: datetime


class ResolveLocationRequest(Locator):
    """Locator plus an option to refresh cached data right away."""

    refresh: bool = Field(default=False, description="Refresh stale sections after resolving")
