import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import PlatformConnectionError, PlatformResponseError
from app.schemas.credentials import WholesaleAppCredentials

logger = logging.getLogger(__name__)

PLATFORM_NAME = "Wholesale app"


class WholesaleAppClient:
    """Status callouts to the wholesale ordering app, authenticated by bearer token"""

    def __init__(
        self,
        credentials: WholesaleAppCredentials,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.credentials = credentials
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.PLATFORM_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.PLATFORM_USER_AGENT}
        )

    async def update_order_status(self, external_order_id: str, status: str) -> Dict[str, Any]:
        url = f"{self.credentials.base_url}/orders/status"
        try:
            response = await self.http_client.post(
                url,
                json={"order_id": external_order_id, "status": status},
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.credentials.api_token}"
                }
            )
        except httpx.TransportError as e:
            logger.warning(f"{PLATFORM_NAME} status update for {external_order_id} failed: {e!r}")
            raise PlatformConnectionError(f"{PLATFORM_NAME} request failed: {e}") from e

        if not response.is_success:
            try:
                error_message = response.json().get("error") or "Unknown error"
            except (ValueError, AttributeError):
                error_message = "Unknown error"
            raise PlatformResponseError(PLATFORM_NAME, response.status_code, error_message)

        if not response.content:
            return {}
        return response.json()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()
