"""Pytest configuration and shared fixtures."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

# Keep tests independent of any developer .env or live provider keys
os.environ.setdefault("PROVIDER_MODE", "mock")
os.environ.setdefault("STORAGE_BACKEND", "database")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from site_evaluator.core.config import CacheSettings, DatabaseSettings, Settings
from site_evaluator.core.database import build_engine
from site_evaluator.providers.mock import (
    MockAddressProvider,
    MockClimateProvider,
    MockGeotechProvider,
    MockHazardProvider,
    MockLandProvider,
    mock_council_providers,
)
from site_evaluator.providers.registry import ProviderRegistry
from site_evaluator.schemas.enums import ProviderKey
from site_evaluator.services.container import ServiceContainer, build_container


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def spy(provider, *methods: str):
    """Replace async provider methods with AsyncMocks that call through."""
    for method in methods:
        setattr(provider, method, AsyncMock(side_effect=getattr(provider, method)))
    return provider


@dataclass
class Providers:
    """Spied mock providers and the registry holding them."""

    registry: ProviderRegistry
    address: MockAddressProvider
    hazard: MockHazardProvider
    geotech: MockGeotechProvider
    climate: MockClimateProvider
    land: MockLandProvider
    councils: List = field(default_factory=list)

    def _mocks(self) -> List[AsyncMock]:
        mocks = [
            self.hazard.hazard_for, self.hazard.historical_events,
            self.geotech.nearby_investigations,
            self.climate.rainfall, self.climate.wind_zone,
            self.land.title_data,
        ]
        for council in self.councils:
            mocks.extend([council.get_zoning_data, council.get_hazard_data, council.get_infrastructure_data])
        return mocks

    def data_calls(self) -> int:
        """Total calls made to section data providers."""
        return sum(mock.await_count for mock in self._mocks())


def build_providers() -> Providers:
    address = spy(MockAddressProvider(), "resolve", "resolve_title", "autocomplete")
    hazard = spy(MockHazardProvider(), "hazard_for", "historical_events")
    geotech = spy(MockGeotechProvider(), "nearby_investigations")
    climate = spy(MockClimateProvider(), "rainfall", "wind_zone")
    land = spy(MockLandProvider(), "title_data")
    councils = [
        spy(council, "get_zoning_data", "get_hazard_data", "get_infrastructure_data")
        for council in mock_council_providers()
    ]

    registry = ProviderRegistry()
    registry.register(ProviderKey.ADDRESS, address)
    registry.register(ProviderKey.HAZARD, hazard)
    registry.register(ProviderKey.GEOTECH, geotech)
    registry.register(ProviderKey.CLIMATE, climate)
    registry.register(ProviderKey.LAND, land)
    for priority, council in enumerate(councils):
        registry.regional.register(council, priority=priority * 10)

    return Providers(
        registry=registry,
        address=address,
        hazard=hazard,
        geotech=geotech,
        climate=climate,
        land=land,
        councils=councils,
    )


def build_settings(tmp_path, **cache_overrides) -> Settings:
    db = DatabaseSettings().model_copy(update={"url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"})
    cache = CacheSettings().model_copy(update={"provider_timeout_seconds": 5.0, **cache_overrides})
    return Settings().model_copy(update={"db": db, "cache": cache})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def providers() -> Providers:
    return build_providers()


@pytest.fixture
def make_container(tmp_path, providers, clock) -> Callable[..., ServiceContainer]:
    """Build a service container on a fresh SQLite database.

    Tables are not created; async tests use the ``container`` fixture and
    API tests let the application lifespan create them.
    """
    def _make(**kwargs) -> ServiceContainer:
        cache_overrides = kwargs.pop("cache", {})
        settings = build_settings(tmp_path, **cache_overrides)
        kwargs.setdefault("providers", providers.registry)
        kwargs.setdefault("clock", clock)
        return build_container(settings, engine=build_engine(settings.db), **kwargs)

    return _make


@pytest_asyncio.fixture
async def container(make_container):
    container = make_container()
    await container.db_client.create_tables()
    yield container
    await container.close()
