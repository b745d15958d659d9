"""
Tests for the HTTP surface: webhook intake and API key protected admin routes.
"""

import json

import httpx
import pytest
from sqlalchemy import func, select

from main import app
from app.api.deps import get_session_maker
from app.core.config import settings
from app.db.database import get_db
from app.models.enums import Channel, PlatformType, WebhookStatus
from app.models.order import Order
from app.models.webhook_queue import WebhookQueueEntry
from app.services.integration_service import IntegrationService
from app.services.request_signer import compute_webhook_signature
from tests.factories import WOO_API, FakePlatform, create_integration, create_order, storefront_order, woo_config

BOOTSTRAP_KEY = "bootstrap-test-key"


@pytest.fixture
async def api_client(session_maker, clients, monkeypatch):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    monkeypatch.setattr(settings, "BOOTSTRAP_API_KEY", BOOTSTRAP_KEY)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.state.platform_clients = clients

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def signed(payload, secret="whsec_test", topic="order.created"):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-WC-Webhook-Topic": topic,
        "X-WC-Webhook-Signature": compute_webhook_signature(body, secret),
    }
    return body, headers


def auth(key=BOOTSTRAP_KEY):
    return {"Authorization": f"Bearer {key}"}


async def queued(db_session):
    return (await db_session.execute(select(func.count()).select_from(WebhookQueueEntry))).scalar_one()


@pytest.mark.asyncio
async def test_signed_order_webhook_is_queued_and_imported(api_client, db_session, woo_integration):
    body, headers = signed(storefront_order(4001))

    response = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{woo_integration.id}", content=body, headers=headers
    )

    assert response.status_code == 202
    entry = await db_session.get(WebhookQueueEntry, response.json()["id"])
    await db_session.refresh(entry)
    assert entry.event_type == "order.created"
    assert entry.status == WebhookStatus.COMPLETED

    order = (await db_session.execute(select(Order).where(Order.external_order_id == "4001"))).scalar_one()
    assert order.channel == Channel.ONLINE


@pytest.mark.asyncio
async def test_bad_signature_is_rejected(api_client, db_session, woo_integration):
    body, headers = signed(storefront_order(4002), secret="not-the-secret")

    response = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{woo_integration.id}", content=body, headers=headers
    )

    assert response.status_code == 401
    assert await queued(db_session) == 0


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(api_client, db_session, woo_integration):
    body, headers = signed(storefront_order(4003))
    del headers["X-WC-Webhook-Signature"]

    response = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{woo_integration.id}", content=body, headers=headers
    )

    assert response.status_code == 401
    assert await queued(db_session) == 0


@pytest.mark.asyncio
async def test_integration_without_secret_rejects_webhooks(api_client, db_session):
    integration = await create_integration(db_session, PlatformType.WOOCOMMERCE, woo_config(webhook_secret=None))
    body, headers = signed(storefront_order(4004))

    response = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{integration.id}", content=body, headers=headers
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_inactive_and_mismatched_integrations(api_client, db_session, wholesale_integration):
    body, headers = signed(storefront_order(4005))

    unknown = await api_client.post("/api/v1/webhooks/woocommerce/missing", content=body, headers=headers)
    mismatched = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{wholesale_integration.id}", content=body, headers=headers
    )
    inactive = await create_integration(db_session, PlatformType.WOOCOMMERCE, woo_config(), is_active=False)
    disabled = await api_client.post(f"/api/v1/webhooks/woocommerce/{inactive.id}", content=body, headers=headers)

    assert unknown.status_code == 404
    assert mismatched.status_code == 400
    assert disabled.status_code == 400
    assert await queued(db_session) == 0


@pytest.mark.asyncio
async def test_registration_ping_is_acknowledged(api_client, db_session, woo_integration):
    response = await api_client.post(
        f"/api/v1/webhooks/woocommerce/{woo_integration.id}",
        content=b"webhook_id=12",
        headers={"Content-Type": "application/x-www-form-urlencoded"}
    )

    assert response.status_code == 202
    assert await queued(db_session) == 0


@pytest.mark.asyncio
async def test_admin_routes_require_api_key(api_client, db_session):
    assert (await api_client.get("/api/v1/integrations/")).status_code == 401
    assert (await api_client.get("/api/v1/integrations/", headers=auth("cs_unknown"))).status_code == 401

    issued = await IntegrationService(db_session).issue_api_key("reader", ["orders:read"])
    forbidden = await api_client.get("/api/v1/integrations/", headers=auth(issued.key))
    assert forbidden.status_code == 403

    allowed = await api_client.get("/api/v1/integrations/", headers=auth())
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_issued_key_is_shown_once(api_client):
    created = await api_client.post(
        "/api/v1/api-keys/", json={"name": "ops", "permissions": ["integrations:read"]}, headers=auth()
    )
    assert created.status_code == 200
    raw_key = created.json()["key"]

    listed = await api_client.get("/api/v1/api-keys/", headers=auth())
    assert "key" not in listed.json()[0]
    assert listed.json()[0]["key_prefix"] == raw_key[:12]

    assert (await api_client.get("/api/v1/integrations/", headers=auth(raw_key))).status_code == 200

    await api_client.delete(f"/api/v1/api-keys/{created.json()['id']}", headers=auth())
    assert (await api_client.get("/api/v1/integrations/", headers=auth(raw_key))).status_code == 401


@pytest.mark.asyncio
async def test_create_integration_hides_credentials(api_client):
    response = await api_client.post("/api/v1/integrations/", headers=auth(), json={
        "name": "Storefront",
        "platform_type": "woocommerce",
        "config": woo_config(),
    })

    assert response.status_code == 200
    assert "config" not in response.json()
    assert response.json()["sync_status"] == "disconnected"


@pytest.mark.asyncio
async def test_status_update_route(api_client, db_session, platform: FakePlatform, woo_integration):
    order = await create_order(db_session, woo_integration, Channel.ONLINE, external_order_id="610")
    platform.on("PUT", f"{WOO_API}/orders/610", {"id": 610})

    response = await api_client.patch(
        f"/api/v1/orders/{order.id}/status", json={"status": "SHIPPED"}, headers=auth()
    )
    history = await api_client.get(f"/api/v1/orders/{order.id}/sync-history", headers=auth())

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert history.json()[0]["result"] == "success"
    assert (await api_client.patch(
        "/api/v1/orders/missing/status", json={"status": "SHIPPED"}, headers=auth()
    )).status_code == 404


@pytest.mark.asyncio
async def test_webhook_queue_list_and_retry(api_client, db_session, woo_integration):
    service = IntegrationService(db_session)
    entry = await service.enqueue_webhook(woo_integration.id, "order.created", storefront_order(4100))
    await service.mark_webhook(entry.id, WebhookStatus.FAILED, "timed out")
    other = await service.enqueue_webhook(woo_integration.id, "coupon.created", {"id": 1})

    listed = await api_client.get("/api/v1/webhooks/queue", headers=auth())
    retried = await api_client.post(f"/api/v1/webhooks/queue/{entry.id}/retry", headers=auth())
    unsupported = await api_client.post(f"/api/v1/webhooks/queue/{other.id}/retry", headers=auth())
    missing = await api_client.post("/api/v1/webhooks/queue/nope/retry", headers=auth())

    assert {item["id"] for item in listed.json()} == {entry.id, other.id}
    assert retried.status_code == 200
    assert retried.json()["status"] == "completed"
    assert unsupported.status_code == 400
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_sync_logs_and_integration_delete(api_client, db_session, platform: FakePlatform, woo_integration):
    platform.on("GET", f"{WOO_API}/orders", [storefront_order(4200)])

    imported = await api_client.post(f"/api/v1/integrations/{woo_integration.id}/import-orders", headers=auth())
    logs = await api_client.get(f"/api/v1/integrations/{woo_integration.id}/sync-logs", headers=auth())

    assert imported.json()["imported"] == 1
    assert [sync_log["sync_type"] for sync_log in logs.json()] == ["order_import"]

    deleted = await api_client.delete(f"/api/v1/integrations/{woo_integration.id}", headers=auth())
    assert deleted.status_code == 200
    assert (await api_client.get(f"/api/v1/integrations/{woo_integration.id}", headers=auth())).status_code == 404


@pytest.mark.asyncio
async def test_completed_webhook_cannot_be_replayed(api_client, db_session, woo_integration):
    service = IntegrationService(db_session)
    entry = await service.enqueue_webhook(woo_integration.id, "order.created", storefront_order(4300))
    await service.mark_webhook(entry.id, WebhookStatus.COMPLETED)

    response = await api_client.post(f"/api/v1/webhooks/queue/{entry.id}/retry", headers=auth())

    assert response.status_code == 409
    assert await db_session.scalar(select(func.count()).select_from(Order)) == 0


@pytest.mark.asyncio
async def test_import_limit_must_be_positive(api_client, woo_integration):
    response = await api_client.post(
        f"/api/v1/integrations/{woo_integration.id}/import-orders", json={"limit": 0}, headers=auth()
    )

    assert response.status_code == 422
