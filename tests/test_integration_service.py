from datetime import datetime, timedelta

import pytest

from app.core.exceptions import ConfigurationError, DuplicateRecordError, NotFoundError, ValidationError
from app.models.enums import (
    IntegrationSyncStatus,
    PlatformType,
    SyncDirection,
    SyncLogStatus,
    SyncType,
    WebhookStatus,
)
from app.schemas.credentials import WholesaleAppCredentials
from app.schemas.integration import IntegrationCreate, IntegrationUpdate
from app.schemas.product_mapping import ProductMappingCreate
from app.services.integration_service import IntegrationService, hash_api_key, summarize_status
from tests.factories import WOO_API, FakePlatform, woo_config


def test_summarize_status():
    assert summarize_status(3, 0) == SyncLogStatus.SUCCESS
    assert summarize_status(0, 0) == SyncLogStatus.SUCCESS
    assert summarize_status(2, 1) == SyncLogStatus.PARTIAL
    assert summarize_status(0, 4) == SyncLogStatus.FAILED


def test_integration_config_must_match_platform():
    with pytest.raises(ValueError):
        IntegrationCreate(name="Mismatch", platform_type=PlatformType.WHOLESALE_APP, config=woo_config())


@pytest.mark.asyncio
async def test_create_and_update_integration(db_session, clients):
    service = IntegrationService(db_session, clients)

    integration = await service.create_integration(IntegrationCreate(
        name="Storefront",
        platform_type=PlatformType.WOOCOMMERCE,
        config=woo_config()
    ))
    assert integration.sync_status == IntegrationSyncStatus.DISCONNECTED
    assert integration.credentials.consumer_key == "ck_test"

    updated = await service.update_integration(integration.id, IntegrationUpdate(is_active=False))
    assert updated.is_active is False

    with pytest.raises(ValidationError):
        await service.update_integration(integration.id, IntegrationUpdate(
            config=WholesaleAppCredentials(base_url="https://x.example.com", api_token="t")
        ))


@pytest.mark.asyncio
async def test_active_integration_checks(db_session, woo_integration, wholesale_integration):
    service = IntegrationService(db_session)

    assert (await service.get_active_integration(woo_integration.id, PlatformType.WOOCOMMERCE)).id == woo_integration.id

    with pytest.raises(ConfigurationError):
        await service.get_active_integration(wholesale_integration.id, PlatformType.WOOCOMMERCE)
    with pytest.raises(ConfigurationError):
        await service.get_active_integration("missing", PlatformType.WOOCOMMERCE)
    with pytest.raises(NotFoundError):
        await service.get_integration("missing")


@pytest.mark.asyncio
async def test_sync_log_lifecycle(db_session, woo_integration):
    service = IntegrationService(db_session)

    sync_log = await service.open_sync_log(woo_integration.id, SyncType.ORDER_IMPORT, SyncDirection.INBOUND)
    assert sync_log.status == SyncLogStatus.RUNNING
    assert sync_log.completed_at is None

    errors = [f"error {i}" for i in range(80)]
    closed = await service.close_sync_log(
        sync_log.id,
        SyncLogStatus.PARTIAL,
        records_processed=3,
        records_failed=80,
        errors=errors
    )
    assert closed.status == SyncLogStatus.PARTIAL
    assert closed.completed_at is not None
    assert len(closed.error_details["errors"]) == 50

    await service.mark_sync_error(woo_integration.id, "boom")
    await db_session.refresh(woo_integration)
    assert woo_integration.sync_status == IntegrationSyncStatus.ERROR

    await service.mark_sync_success(woo_integration.id)
    await db_session.refresh(woo_integration)
    assert woo_integration.sync_status == IntegrationSyncStatus.CONNECTED
    assert woo_integration.last_sync_at is not None
    assert woo_integration.error_message is None


@pytest.mark.asyncio
async def test_api_key_issue_verify_revoke(db_session):
    service = IntegrationService(db_session)

    issued = await service.issue_api_key("ops", ["orders:read"], created_by="admin")
    assert issued.key.startswith("cs_")
    assert issued.key_prefix == issued.key[:12]

    api_key = await service.verify_api_key(issued.key)
    assert api_key is not None
    assert api_key.key_hash == hash_api_key(issued.key)
    assert api_key.key_hash != issued.key
    assert api_key.last_used_at is not None
    assert api_key.allows("orders:read")
    assert not api_key.allows("orders:write")

    assert await service.verify_api_key("cs_" + "0" * 64) is None
    assert await service.verify_api_key(None) is None

    await service.revoke_api_key(issued.id)
    assert await service.verify_api_key(issued.key) is None


@pytest.mark.asyncio
async def test_expired_api_key_is_rejected(db_session):
    service = IntegrationService(db_session)

    issued = await service.issue_api_key("old", ["*"], expires_at=datetime.utcnow() - timedelta(minutes=1))

    assert await service.verify_api_key(issued.key) is None


@pytest.mark.asyncio
async def test_webhook_queue_is_oldest_first_and_keeps_failures(db_session, woo_integration):
    service = IntegrationService(db_session)

    first = await service.enqueue_webhook(woo_integration.id, "order.created", {"id": 1}, "sig")
    second = await service.enqueue_webhook(woo_integration.id, "order.updated", {"id": 2}, "sig")
    third = await service.enqueue_webhook(woo_integration.id, "order.updated", {"id": 3}, "sig")

    pending = await service.get_pending_webhooks(limit=2)
    assert [entry.id for entry in pending] == [first.id, second.id]

    await service.mark_webhook(first.id, WebhookStatus.FAILED, "bad payload")
    await service.mark_webhook(second.id, WebhookStatus.COMPLETED)

    failed = await service.get_webhook(first.id)
    assert failed.status == WebhookStatus.FAILED
    assert failed.error_message == "bad payload"
    assert failed.processed_at is not None

    assert [entry.id for entry in await service.get_pending_webhooks()] == [third.id]


@pytest.mark.asyncio
async def test_product_mapping_lookup_and_duplicates(db_session, woo_integration):
    service = IntegrationService(db_session)
    mapping_in = ProductMappingCreate(
        warehouse_product_id="prod-1",
        warehouse_variation_id="var-1",
        external_product_id="101",
        sku="SKU-1"
    )

    mapping = await service.create_product_mapping(woo_integration.id, mapping_in)

    assert (await service.find_mapping_by_sku(woo_integration.id, "SKU-1")).id == mapping.id
    assert (await service.find_mapping_by_external_id(woo_integration.id, "101")).id == mapping.id
    assert await service.find_mapping_by_external_id(woo_integration.id, "101", "5") is None

    with pytest.raises(DuplicateRecordError):
        await service.create_product_mapping(woo_integration.id, mapping_in)

    await service.delete_product_mapping(mapping.id)
    assert await service.find_mapping_by_sku(woo_integration.id, "SKU-1") is None
    with pytest.raises(NotFoundError):
        await service.delete_product_mapping(mapping.id)


@pytest.mark.asyncio
async def test_register_webhook_stores_generated_secret(db_session, clients, platform: FakePlatform):
    service = IntegrationService(db_session, clients)
    integration = await service.create_integration(IntegrationCreate(
        name="Storefront",
        platform_type=PlatformType.WOOCOMMERCE,
        config=woo_config(webhook_secret=None)
    ))
    platform.on("POST", f"{WOO_API}/webhooks", {"id": 5, "topic": "order.created"})

    webhook = await service.register_webhook(integration.id, "order.created", "https://warehouse.example.com/hook")

    assert webhook["id"] == 5
    sent = FakePlatform.body(platform.calls("POST", f"{WOO_API}/webhooks")[0])
    refreshed = await service.get_integration(integration.id)
    assert refreshed.credentials.webhook_secret == sent["secret"]
    assert sent["delivery_url"] == "https://warehouse.example.com/hook"
