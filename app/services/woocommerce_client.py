"""
Storefront (WooCommerce REST API) client.

Every call is signed with request_signer, sent through a shared
httpx.AsyncClient and either returns parsed JSON or raises a
TransientPlatformError subclass.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import PlatformConnectionError, PlatformResponseError
from app.schemas.credentials import WooCommerceCredentials
from app.schemas.platform import StorefrontOrder, StorefrontProduct, StockUpdate
from app.services import request_signer

logger = logging.getLogger(__name__)

PLATFORM_NAME = "WooCommerce"


def stock_payload(stock_quantity: int) -> Dict[str, Any]:
    """Stock status always follows the quantity"""
    return {
        "stock_quantity": stock_quantity,
        "manage_stock": True,
        "stock_status": "instock" if stock_quantity > 0 else "outofstock"
    }


class WooCommerceClient:
    def __init__(
        self,
        credentials: WooCommerceCredentials,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.credentials = credentials
        self.base_url = f"{credentials.site_url}/wp-json/{credentials.api_version}"
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.PLATFORM_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.PLATFORM_USER_AGENT}
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        params = request_signer.signed_query(
            method,
            url,
            self.credentials.consumer_key,
            self.credentials.consumer_secret,
            query=query_params
        )

        try:
            response = await self.http_client.request(
                method,
                url,
                params=params,
                json=data,
                headers={"Content-Type": "application/json"}
            )
        except httpx.TransportError as e:
            logger.warning(f"{PLATFORM_NAME} {method} {endpoint} failed: {e!r}")
            raise PlatformConnectionError(
                f"{PLATFORM_NAME} request failed: {e}",
                {"method": method, "endpoint": endpoint}
            ) from e

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.warning(f"{PLATFORM_NAME} {method} {endpoint} returned {response.status_code}")
            raise PlatformResponseError(PLATFORM_NAME, response.status_code, body)

        if not response.content:
            return None
        return response.json()

    async def test_connection(self) -> bool:
        try:
            await self._request("GET", "/system_status")
            return True
        except (PlatformConnectionError, PlatformResponseError) as e:
            logger.warning(f"{PLATFORM_NAME} connection test failed: {e}")
            return False

    async def get_orders(
        self,
        status: Optional[str] = None,
        page: int = 1,
        per_page: int = 100,
        after: Optional[str] = None,
        before: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """One page of raw order records; callers validate each record on its own"""
        data = await self._request("GET", "/orders", query_params={
            "status": status,
            "page": page,
            "per_page": per_page,
            "after": after,
            "before": before
        })
        return list(data or [])

    async def get_order(self, order_id: int) -> StorefrontOrder:
        data = await self._request("GET", f"/orders/{order_id}")
        return StorefrontOrder.model_validate(data)

    async def update_order_status(self, order_id: int, status: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/orders/{order_id}", {"status": status})

    async def get_products(
        self,
        page: int = 1,
        per_page: int = 100,
        sku: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/products", query_params={
            "page": page,
            "per_page": per_page,
            "sku": sku
        })
        return list(data or [])

    async def get_product(self, product_id: int) -> StorefrontProduct:
        data = await self._request("GET", f"/products/{product_id}")
        return StorefrontProduct.model_validate(data)

    async def update_product_stock(self, product_id: int, stock_quantity: int) -> Dict[str, Any]:
        return await self._request("PUT", f"/products/{product_id}", stock_payload(stock_quantity))

    async def batch_update_products(self, updates: Iterable[StockUpdate]) -> Dict[str, Any]:
        batch = {
            "update": [
                {"id": update.id, **stock_payload(update.stock_quantity)}
                for update in updates
            ]
        }
        return await self._request("POST", "/products/batch", batch)

    async def get_product_variations(self, product_id: int) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/products/{product_id}/variations") or []

    async def update_product_variation_stock(
        self,
        product_id: int,
        variation_id: int,
        stock_quantity: int
    ) -> Dict[str, Any]:
        # The batch endpoint does not accept variations, so these go one by one
        return await self._request(
            "PUT",
            f"/products/{product_id}/variations/{variation_id}",
            stock_payload(stock_quantity)
        )

    async def create_webhook(self, topic: str, delivery_url: str, secret: str) -> Dict[str, Any]:
        return await self._request("POST", "/webhooks", {
            "name": f"Warehouse - {topic}",
            "topic": topic,
            "delivery_url": delivery_url,
            "secret": secret
        })

    async def get_webhooks(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/webhooks") or []

    async def delete_webhook(self, webhook_id: int) -> None:
        await self._request("DELETE", f"/webhooks/{webhook_id}", query_params={"force": True})

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
        return request_signer.verify_webhook_signature(
            payload,
            signature,
            secret or self.credentials.webhook_secret
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
