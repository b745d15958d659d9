from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, select
from pydantic import BaseModel

from app.crud.base import CRUDBase
from app.models.integration import Integration
from app.models.sync_log import SyncLog
from app.schemas.integration import IntegrationCreate, IntegrationUpdate


class IntegrationCRUD(CRUDBase[Integration, IntegrationCreate, IntegrationUpdate]):
    async def get_all(self, db: AsyncSession) -> List[Integration]:
        result = await db.execute(select(self.model).order_by(desc(Integration.created_at)))
        return list(result.scalars().all())


class SyncLogCRUD(CRUDBase[SyncLog, BaseModel, BaseModel]):
    async def get_for_integration(
        self,
        db: AsyncSession,
        integration_id: Optional[str] = None,
        limit: int = 50
    ) -> List[SyncLog]:
        query = select(self.model)
        if integration_id:
            query = query.where(SyncLog.integration_id == integration_id)
        query = query.order_by(desc(SyncLog.started_at)).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())


integration_crud = IntegrationCRUD(Integration)
sync_log_crud = SyncLogCRUD(SyncLog)
