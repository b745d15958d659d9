from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, or_, select

from app.crud.base import CRUDBase
from app.models.api_key import ApiKey
from app.schemas.api_key import ApiKeyCreate
from pydantic import BaseModel


class ApiKeyCRUD(CRUDBase[ApiKey, ApiKeyCreate, BaseModel]):
    async def get_usable_by_hash(self, db: AsyncSession, key_hash: str, now: datetime) -> Optional[ApiKey]:
        """Active, unexpired key with this digest, or None"""
        query = select(self.model).where(
            ApiKey.key_hash == key_hash,
            ApiKey.is_active.is_(True),
            or_(ApiKey.expires_at.is_(None), ApiKey.expires_at > now)
        )
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def get_all(self, db: AsyncSession) -> List[ApiKey]:
        result = await db.execute(select(self.model).order_by(desc(ApiKey.created_at)))
        return list(result.scalars().all())


api_key_crud = ApiKeyCRUD(ApiKey)
