"""Narrow interfaces for the external data providers consumed by the location cache.

Adapters return ``None`` (or an empty list) when the provider has no data for
the property and raise ``ProviderError`` when the provider itself fails.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Union

from site_evaluator.schemas.location import AddressCandidate, AddressSuggestion, Coordinate
from site_evaluator.schemas.providers import (
    GeotechInvestigation,
    HistoricalEvent,
    InfrastructureData,
    LandData,
    RainfallData,
    RegionalHazardData,
    SeismicHazard,
    WindZone,
    ZoningData,
)


class AddressResolutionProvider(ABC):
    """Authoritative geocoder for creating Locations."""

    name: str = "address"

    @abstractmethod
    async def resolve(self, query: Union[str, Coordinate]) -> List[AddressCandidate]:
        """Geocode address text, or reverse-geocode a coordinate, into ranked candidates."""

    @abstractmethod
    async def resolve_title(self, title_reference: str) -> List[AddressCandidate]:
        """Find the property held under a certificate of title."""

    @abstractmethod
    async def autocomplete(self, partial: str, limit: int = 10) -> List[AddressSuggestion]:
        """Ranked address suggestions for partial input."""


class HazardDataProvider(ABC):
    """National seismic hazard source."""

    name: str = "hazard"

    @abstractmethod
    async def hazard_for(self, lat: float, lon: float) -> Optional[SeismicHazard]:
        ...

    @abstractmethod
    async def historical_events(
        self, lat: float, lon: float, radius_km: float, since: date
    ) -> List[HistoricalEvent]:
        ...


class GeotechDataProvider(ABC):
    name: str = "geotech"

    @abstractmethod
    async def nearby_investigations(
        self, lat: float, lon: float, radius_m: float
    ) -> List[GeotechInvestigation]:
        """Boreholes, CPTs and reports within ``radius_m`` of the point, nearest first."""


class ClimateDataProvider(ABC):
    name: str = "climate"

    @abstractmethod
    async def rainfall(self, lat: float, lon: float) -> Optional[RainfallData]:
        ...

    @abstractmethod
    async def wind_zone(self, lat: float, lon: float) -> Optional[WindZone]:
        ...


class LandDataProvider(ABC):
    name: str = "land"

    @abstractmethod
    async def title_data(self, title_reference: str) -> Optional[LandData]:
        ...


class RegionalZoningProvider(ABC):
    """Data source for one governing authority (a district or city council)."""

    name: str = "council"

    @abstractmethod
    def supports_region(self, lat: float, lon: float) -> bool:
        ...

    @abstractmethod
    async def get_zoning_data(self, lat: float, lon: float) -> Optional[ZoningData]:
        ...

    @abstractmethod
    async def get_hazard_data(self, lat: float, lon: float) -> Optional[RegionalHazardData]:
        ...

    @abstractmethod
    async def get_infrastructure_data(self, lat: float, lon: float) -> Optional[InfrastructureData]:
        ...

    async def zoning_for(self, lat: float, lon: float) -> Optional[ZoningData]:
        return await self.get_zoning_data(lat, lon)
