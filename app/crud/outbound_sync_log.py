from datetime import datetime
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, select, update

from app.crud.base import CRUDBase
from app.models.enums import OutboundResult
from app.models.outbound_sync_log import OutboundSyncLog
from pydantic import BaseModel


class OutboundSyncLogCRUD(CRUDBase[OutboundSyncLog, BaseModel, BaseModel]):
    async def claim_retry(self, db: AsyncSession, log_id: str, max_retries: int) -> bool:
        """
        Reserve one retry attempt for a log row.

        Single conditional UPDATE, so concurrent retries of the same row can
        never push retry_count past max_retries.
        """
        result = await db.execute(
            update(OutboundSyncLog)
            .where(OutboundSyncLog.id == log_id, OutboundSyncLog.retry_count < max_retries)
            .values(
                retry_count=OutboundSyncLog.retry_count + 1,
                last_retry_at=datetime.utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount == 1

    async def get_for_order(self, db: AsyncSession, order_id: str) -> List[OutboundSyncLog]:
        result = await db.execute(
            select(self.model)
            .where(OutboundSyncLog.order_id == order_id)
            .order_by(desc(OutboundSyncLog.created_at))
        )
        return list(result.scalars().all())

    async def get_failed(self, db: AsyncSession, *, max_retries: int, limit: int = 50) -> List[OutboundSyncLog]:
        result = await db.execute(
            select(self.model)
            .where(
                OutboundSyncLog.result == OutboundResult.FAILED,
                OutboundSyncLog.retry_count < max_retries
            )
            .order_by(OutboundSyncLog.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())


outbound_sync_log_crud = OutboundSyncLogCRUD(OutboundSyncLog)
