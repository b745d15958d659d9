import httpx
import pytest

from app.core.exceptions import ConfigurationError, PlatformConnectionError, PlatformResponseError
from app.models.enums import PlatformType
from app.schemas.platform import StockUpdate
from app.services.woocommerce_client import stock_payload
from tests.factories import WHOLESALE_URL, WOO_API, FakePlatform, create_integration, storefront_order, woo_config


def test_stock_status_follows_quantity():
    assert stock_payload(3) == {"stock_quantity": 3, "manage_stock": True, "stock_status": "instock"}
    assert stock_payload(0)["stock_status"] == "outofstock"


@pytest.mark.asyncio
async def test_requests_are_signed(clients, platform: FakePlatform, woo_integration):
    platform.on("GET", f"{WOO_API}/orders", [])

    client = clients.woocommerce(woo_integration)
    assert await client.get_orders(status="processing", per_page=5) == []

    request = platform.calls("GET", f"{WOO_API}/orders")[0]
    params = request.url.params
    assert params["status"] == "processing"
    assert params["per_page"] == "5"
    assert params["oauth_consumer_key"] == "ck_test"
    assert params["oauth_signature"]
    assert "after" not in params


@pytest.mark.asyncio
async def test_non_2xx_raises_response_error(clients, platform: FakePlatform, woo_integration):
    platform.on("PUT", f"{WOO_API}/orders/9", {"code": "woocommerce_rest_shop_order_invalid_id"}, status_code=404)

    with pytest.raises(PlatformResponseError) as exc_info:
        await clients.woocommerce(woo_integration).update_order_status(9, "completed")

    assert exc_info.value.status_code == 404
    assert "WooCommerce API Error: 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_failure_raises_connection_error(clients, platform: FakePlatform, woo_integration):
    platform.on("GET", f"{WOO_API}/system_status", error=httpx.ConnectError("connection refused"))

    with pytest.raises(PlatformConnectionError):
        await clients.woocommerce(woo_integration)._request("GET", "/system_status")
    assert await clients.woocommerce(woo_integration).test_connection() is False


@pytest.mark.asyncio
async def test_batch_update_sends_stock_payloads(clients, platform: FakePlatform, woo_integration):
    platform.on("POST", f"{WOO_API}/products/batch", {"update": []})

    await clients.woocommerce(woo_integration).batch_update_products([
        StockUpdate(id=11, stock_quantity=4),
        StockUpdate(id=12, stock_quantity=0),
    ])

    body = FakePlatform.body(platform.calls("POST", f"{WOO_API}/products/batch")[0])
    assert body == {"update": [
        {"id": 11, "stock_quantity": 4, "manage_stock": True, "stock_status": "instock"},
        {"id": 12, "stock_quantity": 0, "manage_stock": True, "stock_status": "outofstock"},
    ]}


@pytest.mark.asyncio
async def test_wholesale_app_uses_bearer_token(clients, platform: FakePlatform, wholesale_integration):
    path = httpx.URL(f"{WHOLESALE_URL}/orders/status").path
    platform.on("POST", path, {"ok": True})

    await clients.wholesale_app(wholesale_integration).update_order_status("W-77", "in-transit")

    request = platform.calls("POST", path)[0]
    assert request.headers["Authorization"] == "Bearer wholesale-token"
    assert FakePlatform.body(request) == {"order_id": "W-77", "status": "in-transit"}


@pytest.mark.asyncio
async def test_wholesale_app_error_body(clients, platform: FakePlatform, wholesale_integration):
    path = httpx.URL(f"{WHOLESALE_URL}/orders/status").path
    platform.on("POST", path, {"error": "order locked"}, status_code=409)

    with pytest.raises(PlatformResponseError) as exc_info:
        await clients.wholesale_app(wholesale_integration).update_order_status("W-77", "completed")

    assert exc_info.value.body == "order locked"


@pytest.mark.asyncio
async def test_pool_reuses_client_until_credentials_change(clients, db_session, woo_integration):
    first = clients.woocommerce(woo_integration)
    assert clients.woocommerce(woo_integration) is first

    woo_integration.config = woo_config(consumer_secret="rotated")
    await db_session.commit()

    assert clients.woocommerce(woo_integration) is not first


@pytest.mark.asyncio
async def test_pool_rejects_wrong_platform(clients, db_session, wholesale_integration):
    with pytest.raises(ConfigurationError):
        clients.woocommerce(wholesale_integration)

    broken = await create_integration(
        db_session, PlatformType.WOOCOMMERCE, {"platform_type": "woocommerce", "site_url": "not a url"}
    )
    with pytest.raises(ConfigurationError):
        clients.woocommerce(broken)


@pytest.mark.asyncio
async def test_single_record_reads(clients, platform: FakePlatform, woo_integration):
    platform.on("GET", f"{WOO_API}/orders/42", storefront_order(42, status="on-hold"))
    platform.on("GET", f"{WOO_API}/products/77", {"id": 77, "name": "Widget", "sku": "W-1", "variations": [78]})
    platform.on("GET", f"{WOO_API}/products/77/variations", [{"id": 78, "sku": "W-1-RED"}])
    client = clients.woocommerce(woo_integration)

    order = await client.get_order(42)
    product = await client.get_product(77)
    variations = await client.get_product_variations(77)

    assert (order.id, order.status) == (42, "on-hold")
    assert order.line_items[0].sku == "W-1"
    assert (product.sku, product.variations) == ("W-1", [78])
    assert variations == [{"id": 78, "sku": "W-1-RED"}]


@pytest.mark.asyncio
async def test_webhook_listing_and_forced_delete(clients, platform: FakePlatform, woo_integration):
    platform.on("GET", f"{WOO_API}/webhooks", [{"id": 5, "topic": "order.created"}])
    platform.on("DELETE", f"{WOO_API}/webhooks/5", {"id": 5})
    client = clients.woocommerce(woo_integration)

    assert [webhook["id"] for webhook in await client.get_webhooks()] == [5]
    await client.delete_webhook(5)

    request = platform.calls("DELETE", f"{WOO_API}/webhooks/5")[0]
    assert request.url.params["force"] == "true"
