"""Wiring of provider implementations selected by configuration."""

from site_evaluator.core.config import Settings
from site_evaluator.core.credentials import CredentialStore
from site_evaluator.core.exceptions import ConfigurationError
from site_evaluator.providers.linz import LandonlineLandProvider, LinzAddressProvider
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
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


def build_provider_registry(settings: Settings, credentials: CredentialStore) -> ProviderRegistry:
    """Build the provider registry for PROVIDER_MODE.

    ``live`` uses LINZ for address resolution and Landonline for titles when
    their keys are configured; the remaining sources are served by the
    sample providers in both modes.
    """
    mode = settings.providers.mode.lower()
    if mode not in ("mock", "live"):
        raise ConfigurationError(f"Unknown PROVIDER_MODE '{settings.providers.mode}'")

    registry = ProviderRegistry()
    timeout = settings.cache.provider_timeout_seconds

    if mode == "live" and credentials.has("linz"):
        registry.register(
            ProviderKey.ADDRESS,
            LinzAddressProvider(settings.providers.linz_base_url, credentials, timeout=timeout),
        )
    else:
        registry.register(ProviderKey.ADDRESS, MockAddressProvider())

    if mode == "live" and credentials.has("landonline"):
        registry.register(
            ProviderKey.LAND,
            LandonlineLandProvider(settings.providers.landonline_base_url, credentials, timeout=timeout),
        )
    else:
        registry.register(ProviderKey.LAND, MockLandProvider())

    registry.register(ProviderKey.HAZARD, MockHazardProvider())
    registry.register(ProviderKey.GEOTECH, MockGeotechProvider())
    registry.register(ProviderKey.CLIMATE, MockClimateProvider())

    for priority, council in enumerate(mock_council_providers()):
        registry.regional.register(council, priority=priority * 10)

    LOGGER.info(
        "Provider registry built",
        extra={
            "mode": mode,
            "address": registry.get(ProviderKey.ADDRESS).name,
            "land": registry.get(ProviderKey.LAND).name,
            "regions": [e.name for e in registry.regional.entries()],
        },
    )
    return registry
