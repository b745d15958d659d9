from typing import Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime

from app.models.enums import ProductKind


class ProductMappingBase(BaseModel):
    warehouse_product_id: str
    warehouse_product_kind: ProductKind = ProductKind.CONSUMABLE_UNIT
    warehouse_variation_id: Optional[str] = None
    external_product_id: str
    external_variation_id: Optional[str] = None
    sku: Optional[str] = None
    sync_inventory: bool = True


class ProductMappingCreate(ProductMappingBase):
    pass


class ProductMappingUpdate(BaseModel):
    sync_inventory: Optional[bool] = None
    sku: Optional[str] = None


class ProductMappingResponse(ProductMappingBase):
    id: str
    integration_id: str
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
