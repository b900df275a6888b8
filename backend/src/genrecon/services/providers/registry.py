"""Adapter selection by provider family."""

import httpx

from genrecon.core.config import Settings
from genrecon.models.generation_job import ProviderFamily
from genrecon.services.exceptions import ProviderConfigurationError
from genrecon.services.providers.base import ProviderAdapter
from genrecon.services.providers.fal import FalAdapter
from genrecon.services.providers.kie import KieAdapter

ADAPTER_TYPES: dict[ProviderFamily, type[ProviderAdapter]] = {
    ProviderFamily.KIE: KieAdapter,
    ProviderFamily.FAL: FalAdapter,
}

CREDENTIAL_ENV_NAMES: dict[ProviderFamily, str] = {
    ProviderFamily.KIE: "KIE_API_KEY",
    ProviderFamily.FAL: "FAL_API_KEY",
}


class AdapterRegistry:
    """Builds one adapter per configured provider family, sharing a single HTTP client."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        credentials = {
            ProviderFamily.KIE: (settings.kie_api_key, settings.kie_base_url),
            ProviderFamily.FAL: (settings.fal_api_key, settings.fal_base_url),
        }
        self._adapters: dict[ProviderFamily, ProviderAdapter] = {}
        for family, (api_key, base_url) in credentials.items():
            if api_key:
                self._adapters[family] = ADAPTER_TYPES[family](client, api_key, base_url)

    def get(self, family: ProviderFamily) -> ProviderAdapter:
        """Return the adapter for a family.

        Raises:
            ProviderConfigurationError: If the family has no API key configured
        """
        adapter = self._adapters.get(family)
        if adapter is None:
            raise ProviderConfigurationError(f"{CREDENTIAL_ENV_NAMES[family]} not configured")
        return adapter
