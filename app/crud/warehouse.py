from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.warehouse import Variation, InventoryLevel, Bundle, Accessory


async def get_available_units(db: AsyncSession, product_id: str, variation_id: str) -> Optional[int]:
    result = await db.execute(
        select(InventoryLevel.available).where(
            InventoryLevel.product_id == product_id,
            InventoryLevel.variation_id == variation_id
        )
    )
    return result.scalar_one_or_none()


async def get_bundle_stock(db: AsyncSession, bundle_id: str) -> Optional[int]:
    bundle = await db.get(Bundle, bundle_id)
    return None if bundle is None else (bundle.stock_quantity or 0)


async def get_accessory_stock(db: AsyncSession, accessory_id: str) -> Optional[int]:
    accessory = await db.get(Accessory, accessory_id)
    return None if accessory is None else (accessory.stock_quantity or 0)


async def get_variations_with_sku(db: AsyncSession) -> List[Variation]:
    result = await db.execute(select(Variation).where(Variation.sku.is_not(None), Variation.sku != ""))
    return list(result.scalars().all())
