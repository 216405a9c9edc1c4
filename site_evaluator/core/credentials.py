"""Per-provider secret access.

Provider adapters receive a CredentialStore at construction and look up
their key at call time, so rotating a key in the store takes effect on the
next request.
"""

from typing import Dict, Optional

from site_evaluator.core.config import Settings
from site_evaluator.core.exceptions import ConfigurationError
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CredentialStore:
    """In-memory map of provider name to API key."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = {k: v for k, v in (secrets or {}).items() if v}

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialStore":
        return cls({
            "linz": settings.providers.linz_api_key,
            "landonline": settings.providers.landonline_api_key,
            "supabase": settings.storage.supabase_service_role_key,
        })

    def get(self, provider: str) -> Optional[str]:
        return self._secrets.get(provider)

    def require(self, provider: str) -> str:
        secret = self._secrets.get(provider)
        if not secret:
            raise ConfigurationError(f"No credential configured for provider '{provider}'")
        return secret

    def has(self, provider: str) -> bool:
        return provider in self._secrets

    def set(self, provider: str, secret: str) -> None:
        LOGGER.info("Credential updated", extra={"provider": provider})
        self._secrets[provider] = secret

    def revoke(self, provider: str) -> None:
        self._secrets.pop(provider, None)
