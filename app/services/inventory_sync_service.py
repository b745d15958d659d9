import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.crud import warehouse as warehouse_crud
from app.crud.product_mapping import product_mapping_crud
from app.models.enums import PlatformType, ProductKind, SyncDirection, SyncLogStatus, SyncType
from app.models.product_mapping import ProductMapping
from app.schemas.platform import StockUpdate, StorefrontProduct, record_id
from app.schemas.product_mapping import ProductMappingCreate
from app.schemas.sync import AutoMapSummary, InventorySyncSummary, SingleProductSyncResult
from app.services.integration_service import IntegrationService, summarize_status
from app.services.platform_clients import PlatformClientPool
from app.services.woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)


def not_found_message(warehouse_product_id: str) -> str:
    return f"Product {warehouse_product_id} not found in warehouse"


class InventorySyncService:
    def __init__(
        self,
        db: AsyncSession,
        clients: PlatformClientPool,
        integration_service: Optional[IntegrationService] = None
    ):
        self.db = db
        self.clients = clients
        self.integration_service = integration_service or IntegrationService(db, clients)

    async def _resolve_quantity(self, mapping: ProductMapping) -> Optional[int]:
        """Available units for a mapping, or None when the warehouse has no such record"""
        kind = ProductKind(mapping.warehouse_product_kind)

        if kind == ProductKind.CONSUMABLE_UNIT:
            if not mapping.warehouse_variation_id:
                return None
            return await warehouse_crud.get_available_units(
                self.db, mapping.warehouse_product_id, mapping.warehouse_variation_id
            )
        if kind == ProductKind.BUNDLE:
            return await warehouse_crud.get_bundle_stock(self.db, mapping.warehouse_product_id)
        if kind == ProductKind.ACCESSORY:
            return await warehouse_crud.get_accessory_stock(self.db, mapping.warehouse_product_id)
        return None

    async def sync_inventory(
        self,
        integration_id: str,
        warehouse_product_ids: Optional[Iterable[str]] = None
    ) -> InventorySyncSummary:
        """Push warehouse availability for every inventory-synced mapping of one integration"""
        integration = await self.integration_service.get_active_integration(
            integration_id, PlatformType.WOOCOMMERCE
        )
        client = self.clients.woocommerce(integration)

        sync_log = await self.integration_service.open_sync_log(
            integration_id, SyncType.INVENTORY_EXPORT, SyncDirection.OUTBOUND
        )
        sync_log_id = sync_log.id
        summary = InventorySyncSummary(sync_log_id=sync_log_id)
        logger.info(f"Inventory export {sync_log_id} started for integration {integration_id}")

        try:
            mappings = await self.integration_service.get_product_mappings(
                integration_id,
                inventory_only=True,
                warehouse_product_ids=warehouse_product_ids
            )
            summary.total = len(mappings)
            mapping_ids = [mapping.id for mapping in mappings]

            # Simple products go out in one batch call after the loop
            batched: List[Tuple[str, StockUpdate]] = []

            for mapping_id in mapping_ids:
                warehouse_product_id = mapping_id
                try:
                    # Re-read: a rollback after a failed record expires loaded rows
                    mapping = await product_mapping_crud.get(self.db, mapping_id)
                    warehouse_product_id = mapping.warehouse_product_id
                    quantity = await self._resolve_quantity(mapping)
                    if quantity is None:
                        summary.skipped += 1
                        summary.errors.append(not_found_message(warehouse_product_id))
                        continue

                    if mapping.external_variation_id:
                        await client.update_product_variation_stock(
                            int(mapping.external_product_id),
                            int(mapping.external_variation_id),
                            quantity
                        )
                        await product_mapping_crud.mark_synced(self.db, [mapping_id], datetime.utcnow())
                    else:
                        batched.append((
                            mapping_id,
                            StockUpdate(id=int(mapping.external_product_id), stock_quantity=quantity)
                        ))
                    summary.synced += 1

                except Exception as e:
                    logger.warning(f"Inventory export failed for mapping {mapping_id}: {e}")
                    await self.db.rollback()
                    summary.failed += 1
                    summary.errors.append(f"Product {warehouse_product_id}: {e}")

            if batched:
                await self._push_batch(client, batched, summary)

            summary.status = summarize_status(summary.synced, summary.failed)
            await self.integration_service.close_sync_log(
                sync_log_id,
                summary.status,
                records_processed=summary.synced,
                records_failed=summary.failed,
                details=_counts(summary),
                errors=summary.errors
            )
            await self.integration_service.mark_sync_success(integration_id)

        except Exception as e:
            logger.error(f"Inventory export {sync_log_id} aborted: {e}", exc_info=True)
            await self.db.rollback()
            summary.status = SyncLogStatus.FAILED
            summary.errors.append(str(e))
            await self.integration_service.close_sync_log(
                sync_log_id,
                SyncLogStatus.FAILED,
                records_processed=summary.synced,
                records_failed=summary.failed,
                details=_counts(summary),
                error=str(e)
            )
            await self.integration_service.mark_sync_error(integration_id, str(e))

        summary.errors = summary.errors[:settings.SYNC_ERROR_LIMIT]
        logger.info(
            f"Inventory export {sync_log_id} finished {summary.status.value}: "
            f"{summary.synced} synced, {summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    async def _push_batch(
        self,
        client: WooCommerceClient,
        batched: List[Tuple[str, StockUpdate]],
        summary: InventorySyncSummary
    ) -> None:
        try:
            await client.batch_update_products(update for _, update in batched)
        except Exception as e:
            logger.warning(f"Batch stock update of {len(batched)} products failed: {e}")
            summary.synced -= len(batched)
            summary.failed += len(batched)
            summary.errors.append(f"Batch update failed: {e}")
            return
        await product_mapping_crud.mark_synced(
            self.db, [mapping_id for mapping_id, _ in batched], datetime.utcnow()
        )

    async def sync_single_product(self, integration_id: str, warehouse_product_id: str) -> SingleProductSyncResult:
        """Push one product's availability without opening a sync log run"""
        integration = await self.integration_service.get_active_integration(
            integration_id, PlatformType.WOOCOMMERCE
        )
        client = self.clients.woocommerce(integration)

        mappings = await self.integration_service.get_product_mappings(
            integration_id,
            inventory_only=True,
            warehouse_product_ids=[warehouse_product_id]
        )
        if not mappings:
            return SingleProductSyncResult(success=False, error="Product mapping not found")

        errors = []
        for mapping_id in [mapping.id for mapping in mappings]:
            try:
                mapping = await product_mapping_crud.get(self.db, mapping_id)
                quantity = await self._resolve_quantity(mapping)
                if quantity is None:
                    errors.append(not_found_message(warehouse_product_id))
                    continue
                if mapping.external_variation_id:
                    await client.update_product_variation_stock(
                        int(mapping.external_product_id),
                        int(mapping.external_variation_id),
                        quantity
                    )
                else:
                    await client.update_product_stock(int(mapping.external_product_id), quantity)
                await product_mapping_crud.mark_synced(self.db, [mapping_id], datetime.utcnow())
            except Exception as e:
                logger.warning(f"Stock update for product {warehouse_product_id} failed: {e}")
                await self.db.rollback()
                errors.append(str(e))

        if errors:
            return SingleProductSyncResult(success=False, error="; ".join(errors))
        return SingleProductSyncResult(success=True)

    async def auto_map_products_by_sku(self, integration_id: str) -> AutoMapSummary:
        """Create mappings for storefront products whose SKU matches a warehouse variation"""
        integration = await self.integration_service.get_active_integration(
            integration_id, PlatformType.WOOCOMMERCE
        )
        client = self.clients.woocommerce(integration)

        sync_log = await self.integration_service.open_sync_log(
            integration_id, SyncType.PRODUCT_SYNC, SyncDirection.INBOUND
        )
        sync_log_id = sync_log.id
        summary = AutoMapSummary(sync_log_id=sync_log_id)

        try:
            products = await client.get_products(per_page=settings.PRODUCT_PAGE_SIZE)

            variations_by_sku = {}
            for variation in await warehouse_crud.get_variations_with_sku(self.db):
                variations_by_sku.setdefault(variation.sku, (variation.product_id, variation.id))

            for raw_product in products:
                label = _product_label(raw_product)
                try:
                    product = StorefrontProduct.model_validate(raw_product)
                    if not product.sku:
                        continue
                    match = variations_by_sku.get(product.sku)
                    if match is None:
                        continue

                    existing = (
                        await self.integration_service.find_mapping_by_sku(integration_id, product.sku)
                        or await self.integration_service.find_mapping_by_external_id(
                            integration_id, str(product.id)
                        )
                    )
                    if existing:
                        summary.already_mapped += 1
                        continue

                    await self.integration_service.create_product_mapping(integration_id, ProductMappingCreate(
                        warehouse_product_id=match[0],
                        warehouse_product_kind=ProductKind.CONSUMABLE_UNIT,
                        warehouse_variation_id=match[1],
                        external_product_id=str(product.id),
                        sku=product.sku,
                        sync_inventory=True
                    ))
                    summary.mapped += 1
                except Exception as e:
                    logger.warning(f"Auto-map of {label} failed: {e}")
                    await self.db.rollback()
                    summary.errors.append(f"Failed to map {label}: {e}")

            summary.status = summarize_status(summary.mapped + summary.already_mapped, len(summary.errors))
            await self.integration_service.close_sync_log(
                sync_log_id,
                summary.status,
                records_processed=summary.mapped,
                records_failed=len(summary.errors),
                details={"mapped": summary.mapped, "already_mapped": summary.already_mapped},
                errors=summary.errors
            )

        except Exception as e:
            logger.error(f"Auto-map {sync_log_id} aborted: {e}", exc_info=True)
            await self.db.rollback()
            summary.status = SyncLogStatus.FAILED
            summary.errors.append(str(e))
            await self.integration_service.close_sync_log(
                sync_log_id,
                SyncLogStatus.FAILED,
                records_processed=summary.mapped,
                records_failed=len(summary.errors),
                error=str(e)
            )

        summary.errors = summary.errors[:settings.SYNC_ERROR_LIMIT]
        logger.info(
            f"Auto-map {sync_log_id} finished: {summary.mapped} mapped, "
            f"{summary.already_mapped} already mapped"
        )
        return summary


def _counts(summary: InventorySyncSummary) -> Dict[str, Any]:
    return {
        "total": summary.total,
        "synced": summary.synced,
        "skipped": summary.skipped,
        "failed": summary.failed
    }


def _product_label(raw_product: Any) -> str:
    sku = raw_product.get("sku") if isinstance(raw_product, dict) else None
    return f"SKU {sku}" if sku else f"product {record_id(raw_product)}"
