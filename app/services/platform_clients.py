"""
Per-integration platform clients.

One PlatformClientPool lives on the application for its whole lifetime. It
owns the shared httpx.AsyncClient and builds at most one client per
integration, rebuilding it only when the integration's credentials change.
Pipelines receive the pool instead of instantiating clients themselves.
"""

import logging
from typing import Dict, Optional, Tuple, Union

import httpx

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.models.enums import PlatformType
from app.models.integration import Integration
from app.schemas.credentials import WooCommerceCredentials, WholesaleAppCredentials
from app.services.wholesale_app_client import WholesaleAppClient
from app.services.woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)

PlatformClient = Union[WooCommerceClient, WholesaleAppClient]


class PlatformClientPool:
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.PLATFORM_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.PLATFORM_USER_AGENT}
        )
        self._clients: Dict[str, Tuple[object, PlatformClient]] = {}

    def _credentials(self, integration: Integration, platform_type: PlatformType):
        if integration.platform_type != platform_type:
            raise ConfigurationError(
                f"Integration {integration.id} is not a {platform_type.value} integration",
                {"integration_id": integration.id, "platform_type": str(integration.platform_type.value)}
            )
        try:
            credentials = integration.credentials
        except ValueError as e:
            raise ConfigurationError(
                f"Integration {integration.id} has invalid credentials: {e}",
                {"integration_id": integration.id}
            ) from e
        if credentials.platform_type != platform_type.value:
            raise ConfigurationError(
                f"Integration {integration.id} stores {credentials.platform_type} credentials",
                {"integration_id": integration.id}
            )
        return credentials

    def _cached(self, integration: Integration, credentials, factory) -> PlatformClient:
        cached = self._clients.get(integration.id)
        if cached is not None and cached[0] == credentials:
            return cached[1]
        client = factory(credentials, http_client=self.http_client)
        self._clients[integration.id] = (credentials, client)
        logger.debug(f"Built {integration.platform_type.value} client for integration {integration.id}")
        return client

    def woocommerce(self, integration: Integration) -> WooCommerceClient:
        credentials: WooCommerceCredentials = self._credentials(integration, PlatformType.WOOCOMMERCE)
        return self._cached(integration, credentials, WooCommerceClient)

    def wholesale_app(self, integration: Integration) -> WholesaleAppClient:
        credentials: WholesaleAppCredentials = self._credentials(integration, PlatformType.WHOLESALE_APP)
        return self._cached(integration, credentials, WholesaleAppClient)

    def evict(self, integration_id: str) -> None:
        self._clients.pop(integration_id, None)

    async def aclose(self) -> None:
        self._clients.clear()
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
