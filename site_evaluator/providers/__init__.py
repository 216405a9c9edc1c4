"""External data provider interfaces, registries and adapters."""

from site_evaluator.providers.base import (
    AddressResolutionProvider,
    ClimateDataProvider,
    GeotechDataProvider,
    HazardDataProvider,
    LandDataProvider,
    RegionalZoningProvider,
)
from site_evaluator.providers.registry import ProviderRegistry, RegionalProviderRegistry

__all__ = [
    "AddressResolutionProvider",
    "ClimateDataProvider",
    "GeotechDataProvider",
    "HazardDataProvider",
    "LandDataProvider",
    "ProviderRegistry",
    "RegionalProviderRegistry",
    "RegionalZoningProvider",
]
