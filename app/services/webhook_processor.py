import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import CommerceSyncError
from app.models.enums import WebhookStatus
from app.models.webhook_queue import WebhookQueueEntry
from app.schemas.platform import StorefrontOrder
from app.services.integration_service import IntegrationService
from app.services.order_import_service import OrderImportService
from app.services.platform_clients import PlatformClientPool

logger = logging.getLogger(__name__)

ORDER_TOPICS = frozenset({"order.created", "order.updated"})


class WebhookProcessor:
    """Drains the inbound webhook queue into the order import pipeline"""

    def __init__(
        self,
        db: AsyncSession,
        clients: PlatformClientPool,
        integration_service: Optional[IntegrationService] = None
    ):
        self.db = db
        self.integration_service = integration_service or IntegrationService(db, clients)
        self.order_import = OrderImportService(db, clients, self.integration_service)

    async def process_pending(self, limit: Optional[int] = None) -> Dict[str, int]:
        entries = await self.integration_service.get_pending_webhooks(limit)
        entry_ids = [entry.id for entry in entries]
        counts = {"processed": 0, "completed": 0, "failed": 0}
        for entry_id in entry_ids:
            # Re-read: a rollback while handling the previous entry expires loaded rows
            entry = await self.integration_service.get_webhook(entry_id)
            status = await self.process_entry(entry)
            if status is None:
                continue
            counts["processed"] += 1
            counts["completed" if status == WebhookStatus.COMPLETED else "failed"] += 1
        if entries:
            logger.info(
                f"Processed {counts['processed']} webhooks: "
                f"{counts['completed']} completed, {counts['failed']} failed"
            )
        return counts

    async def process_entry(self, entry: WebhookQueueEntry, include_failed: bool = False) -> Optional[WebhookStatus]:
        """
        Handle one queued delivery. The entry is claimed first, so concurrent
        drains never handle the same delivery twice; returns None when the
        claim is lost. Failed entries are only picked up with include_failed.
        """
        entry_id = entry.id
        integration_id = entry.integration_id
        event_type = entry.event_type
        payload = entry.payload

        if not await self.integration_service.claim_webhook(entry_id, include_failed=include_failed):
            logger.info(f"Webhook {entry_id} already claimed, skipping")
            return None

        try:
            if event_type in ORDER_TOPICS:
                storefront_order = StorefrontOrder.model_validate(payload)
                result = await self.order_import.process_webhook_order(integration_id, storefront_order)
                if not (result.success or result.duplicate):
                    raise CommerceSyncError(result.error or "Order import failed")
            else:
                logger.info(f"Webhook {entry_id}: no handler for {event_type}, marking completed")
        except Exception as e:
            logger.warning(f"Webhook {entry_id} ({event_type}) failed: {e}")
            await self.db.rollback()
            await self.integration_service.mark_webhook(entry_id, WebhookStatus.FAILED, str(e))
            return WebhookStatus.FAILED

        await self.integration_service.mark_webhook(entry_id, WebhookStatus.COMPLETED)
        return WebhookStatus.COMPLETED


async def drain_webhook_queue(
    session_maker: async_sessionmaker,
    clients: PlatformClientPool,
    limit: Optional[int] = None
) -> Dict[str, int]:
    async with session_maker() as session:
        return await WebhookProcessor(session, clients).process_pending(limit)
