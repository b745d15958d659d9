from typing import Iterable, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, select, update

from app.crud.base import CRUDBase
from app.models.enums import WebhookStatus
from app.models.webhook_queue import WebhookQueueEntry
from pydantic import BaseModel


class WebhookQueueCRUD(CRUDBase[WebhookQueueEntry, BaseModel, BaseModel]):
    async def get_pending(self, db: AsyncSession, limit: int = 10) -> List[WebhookQueueEntry]:
        """Oldest first"""
        result = await db.execute(
            select(self.model)
            .where(WebhookQueueEntry.status == WebhookStatus.PENDING)
            .order_by(WebhookQueueEntry.created_at, WebhookQueueEntry.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def claim(
        self,
        db: AsyncSession,
        entry_id: str,
        from_statuses: Iterable[WebhookStatus] = (WebhookStatus.PENDING,)
    ) -> bool:
        """Move an entry to processing; false when another worker got there first"""
        result = await db.execute(
            update(WebhookQueueEntry)
            .where(WebhookQueueEntry.id == entry_id, WebhookQueueEntry.status.in_(list(from_statuses)))
            .values(status=WebhookStatus.PROCESSING)
        )
        await db.commit()
        return result.rowcount == 1

    async def get_recent(self, db: AsyncSession, limit: int = 50) -> List[WebhookQueueEntry]:
        result = await db.execute(
            select(self.model).order_by(desc(WebhookQueueEntry.created_at)).limit(limit)
        )
        return list(result.scalars().all())


webhook_queue_crud = WebhookQueueCRUD(WebhookQueueEntry)
