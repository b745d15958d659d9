import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.crud import warehouse
from app.models.enums import ProductKind, SyncLogStatus, SyncType
from app.models.product_mapping import ProductMapping
from app.models.sync_log import SyncLog
from app.models.warehouse import Accessory, Bundle, InventoryLevel, Variation
from app.services.inventory_sync_service import InventorySyncService
from tests.factories import WOO_API, FakePlatform


async def add_mapping(db_session, integration, **fields) -> ProductMapping:
    mapping = ProductMapping(integration_id=integration.id, **fields)
    db_session.add(mapping)
    await db_session.commit()
    return mapping


@pytest.mark.asyncio
async def test_missing_product_is_skipped_not_failed(db_session, clients, platform: FakePlatform, woo_integration):
    """One mapping resolves to 0 available, the other to nothing: 1 synced, 1 skipped"""
    db_session.add(InventoryLevel(product_id="prod-1", variation_id="var-1", available=0))
    await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="prod-1",
        warehouse_product_kind=ProductKind.CONSUMABLE_UNIT,
        warehouse_variation_id="var-1",
        external_product_id="101"
    )
    await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="prod-gone",
        warehouse_product_kind=ProductKind.BUNDLE,
        external_product_id="102"
    )
    platform.on("POST", f"{WOO_API}/products/batch", {"update": []})

    summary = await InventorySyncService(db_session, clients).sync_inventory(woo_integration.id)

    assert (summary.total, summary.synced, summary.skipped, summary.failed) == (2, 1, 1, 0)
    assert summary.status == SyncLogStatus.SUCCESS
    assert summary.errors == ["Product prod-gone not found in warehouse"]

    batch = FakePlatform.body(platform.calls("POST", f"{WOO_API}/products/batch")[0])
    assert batch["update"] == [
        {"id": 101, "stock_quantity": 0, "manage_stock": True, "stock_status": "outofstock"}
    ]

    sync_log = await db_session.get(SyncLog, summary.sync_log_id)
    assert sync_log.sync_type == SyncType.INVENTORY_EXPORT
    assert sync_log.details["skipped"] == 1


@pytest.mark.asyncio
async def test_variations_pushed_individually_simple_products_batched(
    db_session, clients, platform: FakePlatform, woo_integration
):
    db_session.add_all([
        Bundle(id="bundle-1", name="Starter kit", stock_quantity=7),
        Accessory(id="acc-1", name="Case", stock_quantity=3),
    ])
    variation_mapping = await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="bundle-1",
        warehouse_product_kind=ProductKind.BUNDLE,
        external_product_id="200",
        external_variation_id="201"
    )
    simple_mapping = await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="acc-1",
        warehouse_product_kind=ProductKind.ACCESSORY,
        external_product_id="300"
    )
    await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="acc-1",
        warehouse_product_kind=ProductKind.ACCESSORY,
        external_product_id="301",
        sync_inventory=False
    )
    platform.on("PUT", f"{WOO_API}/products/200/variations/201", {"id": 201})
    platform.on("POST", f"{WOO_API}/products/batch", {"update": []})

    summary = await InventorySyncService(db_session, clients).sync_inventory(woo_integration.id)

    assert (summary.total, summary.synced, summary.failed) == (2, 2, 0)
    variation_call = platform.calls("PUT", f"{WOO_API}/products/200/variations/201")
    assert FakePlatform.body(variation_call[0])["stock_quantity"] == 7
    batch_calls = platform.calls("POST", f"{WOO_API}/products/batch")
    assert len(batch_calls) == 1
    assert FakePlatform.body(batch_calls[0])["update"][0]["id"] == 300

    await db_session.refresh(variation_mapping)
    await db_session.refresh(simple_mapping)
    assert variation_mapping.last_synced_at is not None
    assert simple_mapping.last_synced_at is not None


@pytest.mark.asyncio
async def test_failed_batch_counts_its_mappings_as_failed(db_session, clients, platform: FakePlatform, woo_integration):
    db_session.add(Accessory(id="acc-1", name="Case", stock_quantity=3))
    mapping = await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="acc-1",
        warehouse_product_kind=ProductKind.ACCESSORY,
        external_product_id="300"
    )
    platform.on("POST", f"{WOO_API}/products/batch", {"message": "Internal error"}, status_code=500)

    summary = await InventorySyncService(db_session, clients).sync_inventory(woo_integration.id)

    assert (summary.synced, summary.failed) == (0, 1)
    assert summary.status == SyncLogStatus.FAILED
    assert summary.errors[0].startswith("Batch update failed")
    await db_session.refresh(mapping)
    assert mapping.last_synced_at is None


@pytest.mark.asyncio
async def test_filter_by_warehouse_product(db_session, clients, platform: FakePlatform, woo_integration):
    db_session.add_all([
        Accessory(id="acc-1", name="Case", stock_quantity=3),
        Accessory(id="acc-2", name="Strap", stock_quantity=4),
    ])
    for product_id, external_id in (("acc-1", "300"), ("acc-2", "301")):
        await add_mapping(
            db_session, woo_integration,
            warehouse_product_id=product_id,
            warehouse_product_kind=ProductKind.ACCESSORY,
            external_product_id=external_id
        )
    platform.on("POST", f"{WOO_API}/products/batch", {"update": []})

    summary = await InventorySyncService(db_session, clients).sync_inventory(woo_integration.id, ["acc-2"])

    assert summary.total == 1
    batch = FakePlatform.body(platform.calls("POST", f"{WOO_API}/products/batch")[0])
    assert [update["id"] for update in batch["update"]] == [301]


@pytest.mark.asyncio
async def test_sync_single_product(db_session, clients, platform: FakePlatform, woo_integration):
    db_session.add(Accessory(id="acc-1", name="Case", stock_quantity=2))
    await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="acc-1",
        warehouse_product_kind=ProductKind.ACCESSORY,
        external_product_id="300"
    )
    platform.on("PUT", f"{WOO_API}/products/300", {"id": 300})
    service = InventorySyncService(db_session, clients)

    result = await service.sync_single_product(woo_integration.id, "acc-1")
    missing = await service.sync_single_product(woo_integration.id, "acc-unknown")

    assert result.success
    assert FakePlatform.body(platform.calls("PUT", f"{WOO_API}/products/300")[0])["stock_quantity"] == 2
    assert not missing.success


@pytest.mark.asyncio
async def test_auto_map_by_sku(db_session, clients, platform: FakePlatform, woo_integration):
    db_session.add_all([
        Variation(id="var-1", product_id="prod-1", sku="SKU-1"),
        Variation(id="var-2", product_id="prod-2", sku="SKU-2"),
    ])
    await add_mapping(
        db_session, woo_integration,
        warehouse_product_id="prod-2",
        warehouse_product_kind=ProductKind.CONSUMABLE_UNIT,
        warehouse_variation_id="var-2",
        external_product_id="502",
        sku="SKU-2"
    )
    platform.on("GET", f"{WOO_API}/products", [
        {"id": 501, "name": "One", "sku": "SKU-1"},
        {"id": 502, "name": "Two", "sku": "SKU-2"},
        {"id": 503, "name": "Unknown", "sku": "SKU-X"},
        {"id": 504, "name": "No sku", "sku": ""},
    ])

    summary = await InventorySyncService(db_session, clients).auto_map_products_by_sku(woo_integration.id)

    assert (summary.mapped, summary.already_mapped, summary.errors) == (1, 1, [])
    assert summary.status == SyncLogStatus.SUCCESS

    created = (await db_session.execute(
        select(ProductMapping).where(ProductMapping.external_product_id == "501")
    )).scalar_one()
    assert created.warehouse_product_id == "prod-1"
    assert created.warehouse_variation_id == "var-1"
    assert created.warehouse_product_kind == ProductKind.CONSUMABLE_UNIT

    sync_log = await db_session.get(SyncLog, summary.sync_log_id)
    assert sync_log.sync_type == SyncType.PRODUCT_SYNC


@pytest.mark.asyncio
async def test_datastore_error_fails_one_mapping_only(
    db_session, clients, platform: FakePlatform, woo_integration, monkeypatch
):
    db_session.add_all([
        Accessory(id="acc-1", name="Case", stock_quantity=3),
        Accessory(id="acc-2", name="Strap", stock_quantity=4),
        Accessory(id="acc-3", name="Charger", stock_quantity=5),
    ])
    for product_id, external_id in (("acc-1", "300"), ("acc-2", "301"), ("acc-3", "302")):
        await add_mapping(
            db_session, woo_integration,
            warehouse_product_id=product_id,
            warehouse_product_kind=ProductKind.ACCESSORY,
            external_product_id=external_id
        )
    platform.on("POST", f"{WOO_API}/products/batch", {"update": []})
    accessory_stock = warehouse.get_accessory_stock

    async def flaky_stock(db, accessory_id):
        if accessory_id == "acc-2":
            raise OperationalError("SELECT accessories", {}, Exception("server closed the connection"))
        return await accessory_stock(db, accessory_id)

    rollbacks = []
    rollback = db_session.rollback

    async def counting_rollback():
        rollbacks.append(True)
        await rollback()

    monkeypatch.setattr(warehouse, "get_accessory_stock", flaky_stock)
    monkeypatch.setattr(db_session, "rollback", counting_rollback)

    summary = await InventorySyncService(db_session, clients).sync_inventory(woo_integration.id)

    assert (summary.total, summary.synced, summary.failed) == (3, 2, 1)
    assert summary.status == SyncLogStatus.PARTIAL
    assert summary.errors[0].startswith("Product acc-2:")
    assert rollbacks
    batch = FakePlatform.body(platform.calls("POST", f"{WOO_API}/products/batch")[0])
    assert sorted(update["id"] for update in batch["update"]) == [300, 302]


@pytest.mark.asyncio
async def test_auto_map_malformed_product_fails_alone(db_session, clients, platform: FakePlatform, woo_integration):
    db_session.add_all([
        Variation(id="var-1", product_id="prod-1", sku="SKU-1"),
        Variation(id="var-3", product_id="prod-3", sku="SKU-3"),
    ])
    await db_session.commit()
    platform.on("GET", f"{WOO_API}/products", [
        {"id": 601, "name": "One", "sku": "SKU-1"},
        {"id": "not-an-id", "name": "Broken", "sku": "SKU-2"},
        {"id": 603, "name": "Three", "sku": "SKU-3"},
    ])

    summary = await InventorySyncService(db_session, clients).auto_map_products_by_sku(woo_integration.id)

    assert summary.mapped == 2
    assert len(summary.errors) == 1
    assert summary.errors[0].startswith("Failed to map SKU SKU-2")
    assert summary.status == SyncLogStatus.PARTIAL
