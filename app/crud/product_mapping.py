from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.crud.base import CRUDBase
from app.models.product_mapping import ProductMapping
from app.schemas.product_mapping import ProductMappingCreate, ProductMappingUpdate


class ProductMappingCRUD(CRUDBase[ProductMapping, ProductMappingCreate, ProductMappingUpdate]):
    async def get_for_integration(
        self,
        db: AsyncSession,
        integration_id: str,
        *,
        inventory_only: bool = False,
        warehouse_product_ids: Optional[Iterable[str]] = None
    ) -> List[ProductMapping]:
        query = select(self.model).where(ProductMapping.integration_id == integration_id)
        if inventory_only:
            query = query.where(ProductMapping.sync_inventory.is_(True))
        if warehouse_product_ids:
            query = query.where(ProductMapping.warehouse_product_id.in_(list(warehouse_product_ids)))
        query = query.order_by(ProductMapping.created_at, ProductMapping.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def find_by_sku(self, db: AsyncSession, integration_id: str, sku: str) -> Optional[ProductMapping]:
        query = (
            select(self.model)
            .where(ProductMapping.integration_id == integration_id, ProductMapping.sku == sku)
            .order_by(ProductMapping.created_at)
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_by_external_id(
        self,
        db: AsyncSession,
        integration_id: str,
        external_product_id: str,
        external_variation_id: Optional[str] = None
    ) -> Optional[ProductMapping]:
        query = select(self.model).where(
            ProductMapping.integration_id == integration_id,
            ProductMapping.external_product_id == external_product_id
        )
        if external_variation_id:
            query = query.where(ProductMapping.external_variation_id == external_variation_id)
        else:
            query = query.where(ProductMapping.external_variation_id.is_(None))
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def mark_synced(self, db: AsyncSession, mapping_ids: Iterable[str], synced_at: datetime) -> None:
        mapping_ids = list(mapping_ids)
        if not mapping_ids:
            return
        await db.execute(
            update(ProductMapping)
            .where(ProductMapping.id.in_(mapping_ids))
            .values(last_synced_at=synced_at)
        )
        await db.commit()


product_mapping_crud = ProductMappingCRUD(ProductMapping)
