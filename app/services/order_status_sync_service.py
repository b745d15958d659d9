"""
Outbound order status propagation.

Each order channel belongs to exactly one platform type (wholesale orders to
the wholesale app, online orders to the storefront). The check runs before
any platform call, on first attempts and retries alike, and a violation is
never retried.

Every attempt leaves an OutboundSyncLog row. Retries update the row in place
and are capped at settings.MAX_STATUS_SYNC_RETRIES.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ChannelSegregationError,
    CommerceSyncError,
    ConfigurationError,
    NotFoundError,
    RetryLimitExceededError,
)
from app.crud.integration import integration_crud
from app.crud.order import order_crud
from app.crud.outbound_sync_log import outbound_sync_log_crud
from app.models.enums import Channel, OrderStatus, OutboundResult, PlatformType
from app.models.integration import Integration
from app.models.order import Order
from app.models.outbound_sync_log import UNKNOWN, OutboundSyncLog
from app.schemas.sync import StatusSyncResult
from app.services.platform_clients import PlatformClientPool
from app.services.status_mapping import CHANNEL_PLATFORM, to_platform_status

logger = logging.getLogger(__name__)


def enforce_channel_segregation(channel: Channel, platform_type: PlatformType) -> None:
    expected = CHANNEL_PLATFORM.get(Channel(channel))
    if platform_type != expected:
        raise ChannelSegregationError(
            Channel(channel).value,
            PlatformType(platform_type).value,
            expected.value if expected else None
        )


def _error_code(error: Exception) -> str:
    if isinstance(error, CommerceSyncError):
        return error.error_code
    return "INTERNAL_ERROR"


class OrderStatusSyncService:
    def __init__(self, db: AsyncSession, clients: PlatformClientPool):
        self.db = db
        self.clients = clients

    async def _load(self, order_id: str, integration_id: Optional[str] = None):
        order = await order_crud.get(self.db, order_id)
        if not order:
            raise NotFoundError(f"Order not found: {order_id}", {"order_id": order_id})
        integration_id = integration_id or order.integration_id
        if not integration_id:
            raise ConfigurationError(f"Order {order_id} has no integration", {"order_id": order_id})
        integration = await integration_crud.get(self.db, integration_id)
        if not integration:
            raise ConfigurationError(
                f"Integration not found for order {order_id}",
                {"order_id": order_id, "integration_id": integration_id}
            )
        return order, integration

    async def _push(self, order: Order, integration: Integration, new_status: OrderStatus) -> str:
        """Send the status to the order's platform; returns the platform's status value"""
        enforce_channel_segregation(order.channel, integration.platform_type)

        platform_status = to_platform_status(integration.platform_type, new_status)
        external_order_id = order.external_order_id

        if integration.platform_type == PlatformType.WOOCOMMERCE:
            try:
                storefront_order_id = int(external_order_id)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Invalid WooCommerce order ID: {external_order_id}")
            client = self.clients.woocommerce(integration)
            await client.update_order_status(storefront_order_id, platform_status)

        elif integration.platform_type == PlatformType.WHOLESALE_APP:
            if not external_order_id:
                raise ConfigurationError(f"No wholesale app order ID found for order {order.id}")
            client = self.clients.wholesale_app(integration)
            await client.update_order_status(external_order_id, platform_status)

        else:
            raise ConfigurationError(f"Unsupported platform type: {integration.platform_type.value}")

        return platform_status

    async def sync_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        old_status: Optional[OrderStatus] = None
    ) -> StatusSyncResult:
        """Push one status change. Never raises: failures come back as a failed result."""
        new_status = OrderStatus(new_status)
        integration_id = None
        platform_type = UNKNOWN
        channel = UNKNOWN
        previous = OrderStatus(old_status).value if old_status else None

        try:
            order, integration = await self._load(order_id)
            integration_id = integration.id
            platform_type = integration.platform_type.value
            channel = order.channel.value
            if previous is None:
                previous = order.status.value

            await self._push(order, integration, new_status)

        except Exception as e:
            logger.warning(f"Status sync for order {order_id} to {new_status.value} failed: {e}")
            await self.db.rollback()
            sync_log = await outbound_sync_log_crud.create(self.db, obj_in={
                "order_id": order_id,
                "integration_id": integration_id,
                "platform_type": platform_type,
                "channel": channel,
                "old_status": previous,
                "new_status": new_status.value,
                "result": OutboundResult.FAILED,
                "error_message": str(e),
                "retry_count": 0,
            })
            return StatusSyncResult(
                success=False,
                sync_log_id=sync_log.id,
                order_id=order_id,
                platform_type=platform_type,
                new_status=new_status.value,
                error=str(e),
                error_code=_error_code(e)
            )

        sync_log = await outbound_sync_log_crud.create(self.db, obj_in={
            "order_id": order_id,
            "integration_id": integration_id,
            "platform_type": platform_type,
            "channel": channel,
            "old_status": previous,
            "new_status": new_status.value,
            "result": OutboundResult.SUCCESS,
            "retry_count": 0,
            "synced_at": datetime.utcnow(),
        })
        logger.info(f"Synced order {order_id} status {new_status.value} to {platform_type}")
        return StatusSyncResult(
            success=True,
            sync_log_id=sync_log.id,
            order_id=order_id,
            platform_type=platform_type,
            new_status=new_status.value
        )

    async def update_status(self, order_id: str, new_status: OrderStatus) -> StatusSyncResult:
        """Change the warehouse status of an order, then push it to the order's platform"""
        new_status = OrderStatus(new_status)
        order = await order_crud.get(self.db, order_id)
        if not order:
            raise NotFoundError(f"Order not found: {order_id}", {"order_id": order_id})
        old_status = order.status
        if old_status == new_status:
            # Nothing changed, so there is nothing to push
            return StatusSyncResult(
                success=True,
                order_id=order_id,
                platform_type=CHANNEL_PLATFORM[order.channel].value,
                new_status=new_status.value
            )
        order.status = new_status
        await self.db.commit()
        logger.info(f"Order {order_id} status {old_status.value} -> {new_status.value}")
        return await self.sync_status(order_id, new_status, old_status)

    async def bulk_update_status(self, order_ids: List[str], new_status: OrderStatus) -> List[StatusSyncResult]:
        results = []
        for order_id in order_ids:
            try:
                results.append(await self.update_status(order_id, new_status))
            except NotFoundError as e:
                results.append(StatusSyncResult(
                    success=False,
                    order_id=order_id,
                    platform_type=UNKNOWN,
                    new_status=OrderStatus(new_status).value,
                    error=e.message,
                    error_code=e.error_code
                ))
        return results

    async def retry(self, sync_log_id: str) -> StatusSyncResult:
        """
        Repeat a logged attempt with its original old and new status.

        The attempt is claimed with a conditional increment before anything
        else happens; once the ceiling is reached RetryLimitExceededError is
        raised and no platform call is made.
        """
        max_retries = settings.MAX_STATUS_SYNC_RETRIES
        sync_log = await outbound_sync_log_crud.get(self.db, sync_log_id)
        if not sync_log:
            raise NotFoundError(f"Sync log not found: {sync_log_id}", {"sync_log_id": sync_log_id})

        if not await outbound_sync_log_crud.claim_retry(self.db, sync_log_id, max_retries):
            raise RetryLimitExceededError(max_retries)
        await self.db.refresh(sync_log)

        order_id = sync_log.order_id
        new_status = OrderStatus(sync_log.new_status)
        retry_count = sync_log.retry_count
        platform_type = sync_log.platform_type

        try:
            order, integration = await self._load(order_id, sync_log.integration_id)
            platform_type = integration.platform_type.value
            await self._push(order, integration, new_status)
        except Exception as e:
            logger.warning(f"Retry {retry_count} of status sync {sync_log_id} failed: {e}")
            await self.db.rollback()
            await self._record_retry(sync_log_id, OutboundResult.FAILED, str(e))
            return StatusSyncResult(
                success=False,
                sync_log_id=sync_log_id,
                order_id=order_id,
                platform_type=platform_type,
                new_status=new_status.value,
                error=str(e),
                error_code=_error_code(e),
                retry_count=retry_count
            )

        await self._record_retry(sync_log_id, OutboundResult.SUCCESS, None)
        logger.info(f"Retry {retry_count} of status sync {sync_log_id} succeeded")
        return StatusSyncResult(
            success=True,
            sync_log_id=sync_log_id,
            order_id=order_id,
            platform_type=platform_type,
            new_status=new_status.value,
            retry_count=retry_count
        )

    async def _record_retry(self, sync_log_id: str, result: OutboundResult, error_message: Optional[str]) -> None:
        sync_log = await outbound_sync_log_crud.get(self.db, sync_log_id)
        sync_log.result = result
        sync_log.error_message = error_message
        if result == OutboundResult.SUCCESS:
            sync_log.synced_at = datetime.utcnow()
        await self.db.commit()

    async def retry_failed(self, limit: int = 50) -> List[StatusSyncResult]:
        failed = await self.get_failed_syncs(limit)
        log_ids = [sync_log.id for sync_log in failed]
        results = []
        for log_id in log_ids:
            try:
                results.append(await self.retry(log_id))
            except RetryLimitExceededError as e:
                # Claimed concurrently up to the ceiling since the listing
                logger.info(f"Skipping status sync {log_id}: {e}")
        return results

    async def get_sync_history(self, order_id: str) -> List[OutboundSyncLog]:
        return await outbound_sync_log_crud.get_for_order(self.db, order_id)

    async def get_failed_syncs(self, limit: int = 50) -> List[OutboundSyncLog]:
        return await outbound_sync_log_crud.get_failed(
            self.db, max_retries=settings.MAX_STATUS_SYNC_RETRIES, limit=limit
        )
