"""Explicit registries for data providers."""

from dataclasses import dataclass
from typing import Dict, List, Optional, TypeVar

from site_evaluator.core.exceptions import ConfigurationError
from site_evaluator.providers.base import RegionalZoningProvider
from site_evaluator.schemas.enums import ProviderKey
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


class ProviderRegistry:
    """Providers keyed by a stable ProviderKey, plus the regional council registry."""

    def __init__(self, regional: Optional["RegionalProviderRegistry"] = None):
        self._providers: Dict[ProviderKey, object] = {}
        self.regional = regional or RegionalProviderRegistry()

    def register(self, key: ProviderKey, provider: object) -> None:
        if key in self._providers:
            LOGGER.warning(
                "Replacing registered provider",
                extra={"key": key.value, "provider": getattr(provider, "name", type(provider).__name__)},
            )
        self._providers[key] = provider

    def get(self, key: ProviderKey) -> object:
        try:
            return self._providers[key]
        except KeyError:
            raise ConfigurationError(f"No provider registered for '{key.value}'") from None

    def has(self, key: ProviderKey) -> bool:
        return key in self._providers

    def keys(self) -> List[ProviderKey]:
        return list(self._providers)


@dataclass
class RegionalEntry:
    name: str
    priority: int
    provider: RegionalZoningProvider
    order: int


class RegionalProviderRegistry:
    """Council providers ordered by priority.

    Lower priority values win; equal priorities fall back to registration
    order.
    """

    def __init__(self) -> None:
        self._entries: List[RegionalEntry] = []

    def register(self, provider: RegionalZoningProvider, priority: int = 100, name: Optional[str] = None) -> None:
        entry = RegionalEntry(
            name=name or provider.name,
            priority=priority,
            provider=provider,
            order=len(self._entries),
        )
        self._entries.append(entry)
        self._entries.sort(key=lambda e: (e.priority, e.order))

    def entries(self) -> List[RegionalEntry]:
        return list(self._entries)

    def matching(self, lat: float, lon: float) -> List[RegionalEntry]:
        return [e for e in self._entries if e.provider.supports_region(lat, lon)]

    def select(self, lat: float, lon: float) -> Optional[RegionalZoningProvider]:
        """The provider governing a coordinate, or None if no region covers it."""
        matches = self.matching(lat, lon)
        if not matches:
            return None
        if len(matches) > 1:
            LOGGER.info(
                "Overlapping regional providers, using highest priority",
                extra={
                    "latitude": lat,
                    "longitude": lon,
                    "selected": matches[0].name,
                    "candidates": [m.name for m in matches],
                },
            )
        return matches[0].provider
