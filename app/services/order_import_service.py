import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import PersistenceError
from app.crud.order import order_crud
from app.models.enums import Channel, PlatformType, SyncDirection, SyncLogStatus, SyncType
from app.models.order import Order, OrderItem
from app.schemas.platform import StorefrontOrder, record_id
from app.schemas.sync import ImportOrderResult, OrderImportSummary
from app.services.integration_service import IntegrationService, summarize_status
from app.services.platform_clients import PlatformClientPool
from app.services.status_mapping import map_storefront_status

logger = logging.getLogger(__name__)

ALREADY_IMPORTED = "Order already imported"


def _money(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


class OrderImportService:
    def __init__(
        self,
        db: AsyncSession,
        clients: PlatformClientPool,
        integration_service: Optional[IntegrationService] = None
    ):
        self.db = db
        self.clients = clients
        self.integration_service = integration_service or IntegrationService(db, clients)

    async def import_order(self, storefront_order: StorefrontOrder, integration_id: str) -> ImportOrderResult:
        """Persist one storefront order unless it was imported before"""
        external_id = str(storefront_order.id)

        existing = await order_crud.get_by_external_id(
            self.db,
            integration_id=integration_id,
            external_order_id=external_id
        )
        if existing:
            return ImportOrderResult(
                success=False,
                duplicate=True,
                external_order_id=storefront_order.id,
                order_id=existing.id,
                error=ALREADY_IMPORTED
            )

        shipping = storefront_order.shipping
        billing = storefront_order.billing
        address = shipping if shipping.is_complete else billing

        order = Order(
            order_code=storefront_order.order_key or f"WOO-{storefront_order.id}",
            channel=Channel.ONLINE,
            status=map_storefront_status(storefront_order.status),
            receiver=address.full_name,
            address=address.address_1,
            address_line2=address.address_2 or None,
            city=address.city,
            state=address.state,
            postal_code=address.postcode,
            country=address.country,
            email=billing.email or None,
            phone=billing.phone or None,
            order_total=_money(storefront_order.total),
            notes=storefront_order.customer_note or None,
            order_date=storefront_order.date_created,
            external_order_id=external_id,
            integration_id=integration_id
        )
        self.db.add(order)
        try:
            await self.db.commit()
        except IntegrityError:
            # Imported concurrently between the existence check and the insert
            await self.db.rollback()
            return ImportOrderResult(
                success=False,
                duplicate=True,
                external_order_id=storefront_order.id,
                error=ALREADY_IMPORTED
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to create order: {e}") from e

        order_id = order.id
        await self._add_items(order_id, storefront_order)

        return ImportOrderResult(
            success=True,
            order_id=order_id,
            external_order_id=storefront_order.id
        )

    async def _add_items(self, order_id: str, storefront_order: StorefrontOrder) -> None:
        """Best effort: the order header stays even if its items cannot be written"""
        if not storefront_order.line_items:
            return
        try:
            items = [
                OrderItem(
                    order_id=order_id,
                    sku=item.sku or None,
                    item_name=item.name,
                    quantity=item.quantity,
                    unit_price=_money(item.price),
                    total_price=_money(item.total),
                    external_product_id=str(item.product_id),
                    external_variation_id=str(item.variation_id) if item.variation_id else None
                )
                for item in storefront_order.line_items
            ]
            self.db.add_all(items)
            await self.db.commit()
        except (SQLAlchemyError, InvalidOperation) as e:
            await self.db.rollback()
            logger.error(
                f"Failed to create items for order {order_id} "
                f"(external {storefront_order.id}): {e}"
            )

    async def import_orders(
        self,
        integration_id: str,
        status: Optional[str] = None,
        after: Optional[str] = None,
        limit: Optional[int] = None
    ) -> OrderImportSummary:
        """Pull one page of storefront orders and import the ones not seen before"""
        integration = await self.integration_service.get_active_integration(
            integration_id, PlatformType.WOOCOMMERCE
        )
        client = self.clients.woocommerce(integration)
        page_size = settings.ORDER_IMPORT_PAGE_SIZE

        sync_log = await self.integration_service.open_sync_log(
            integration_id, SyncType.ORDER_IMPORT, SyncDirection.INBOUND
        )
        sync_log_id = sync_log.id
        summary = OrderImportSummary(sync_log_id=sync_log_id)
        logger.info(f"Order import {sync_log_id} started for integration {integration_id}")

        try:
            orders = await client.get_orders(
                status=status,
                after=after,
                page=1,
                per_page=min(limit or page_size, page_size)
            )
            summary.total = len(orders)

            for raw_order in orders:
                external_id = record_id(raw_order)
                try:
                    storefront_order = StorefrontOrder.model_validate(raw_order)
                    result = await self.import_order(storefront_order, integration_id)
                except Exception as e:
                    logger.warning(f"Order {external_id} failed to import: {e}")
                    await self.db.rollback()
                    result = ImportOrderResult(success=False, error=str(e))

                if result.success:
                    summary.imported += 1
                elif result.duplicate:
                    summary.skipped += 1
                else:
                    summary.failed += 1
                    summary.errors.append(f"Order {external_id}: {result.error}")

            summary.status = summarize_status(summary.imported, summary.failed)
            await self.integration_service.close_sync_log(
                sync_log_id,
                summary.status,
                records_processed=summary.imported + summary.skipped,
                records_failed=summary.failed,
                details=_counts(summary),
                errors=summary.errors
            )
            await self.integration_service.mark_sync_success(integration_id)

        except Exception as e:
            logger.error(f"Order import {sync_log_id} aborted: {e}", exc_info=True)
            await self.db.rollback()
            summary.status = SyncLogStatus.FAILED
            summary.errors.append(str(e))
            await self.integration_service.close_sync_log(
                sync_log_id,
                SyncLogStatus.FAILED,
                records_processed=summary.imported + summary.skipped,
                records_failed=summary.failed,
                details=_counts(summary),
                error=str(e)
            )
            await self.integration_service.mark_sync_error(integration_id, str(e))

        summary.errors = summary.errors[:settings.SYNC_ERROR_LIMIT]
        logger.info(
            f"Order import {sync_log_id} finished {summary.status.value}: "
            f"{summary.imported} imported, {summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    async def process_webhook_order(self, integration_id: str, storefront_order: StorefrontOrder) -> ImportOrderResult:
        await self.integration_service.get_integration(integration_id)
        sync_log = await self.integration_service.open_sync_log(
            integration_id, SyncType.WEBHOOK, SyncDirection.INBOUND
        )
        sync_log_id = sync_log.id

        try:
            result = await self.import_order(storefront_order, integration_id)
        except Exception as e:
            logger.warning(f"Webhook order {storefront_order.id} failed to import: {e}")
            await self.db.rollback()
            result = ImportOrderResult(
                success=False,
                external_order_id=storefront_order.id,
                error=str(e)
            )

        succeeded = result.success or result.duplicate
        await self.integration_service.close_sync_log(
            sync_log_id,
            SyncLogStatus.SUCCESS if succeeded else SyncLogStatus.FAILED,
            records_processed=1 if succeeded else 0,
            records_failed=0 if succeeded else 1,
            details=result.model_dump(mode="json"),
            error=None if succeeded else result.error
        )
        return result


def _counts(summary: OrderImportSummary) -> dict:
    return {
        "total": summary.total,
        "imported": summary.imported,
        "skipped": summary.skipped,
        "failed": summary.failed
    }
