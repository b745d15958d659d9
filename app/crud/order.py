from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.crud.base import CRUDBase
from app.models.order import Order
from pydantic import BaseModel


class OrderCRUD(CRUDBase[Order, BaseModel, BaseModel]):
    async def get_by_external_id(
        self,
        db: AsyncSession,
        *,
        integration_id: str,
        external_order_id: str
    ) -> Optional[Order]:
        query = select(self.model).where(
            Order.integration_id == integration_id,
            Order.external_order_id == external_order_id
        )
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()


order_crud = OrderCRUD(Order)
