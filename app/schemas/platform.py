"""Payload shapes exchanged with the storefront API"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, field_validator


class StorefrontAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: str = ""
    last_name: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_complete(self) -> bool:
        return bool(self.address_1 and self.city)


class StorefrontLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    product_id: int = 0
    variation_id: int = 0
    quantity: int = 0
    sku: Optional[str] = None
    price: float = 0
    total: str = "0"


class StorefrontOrder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    order_key: Optional[str] = None
    status: str
    currency: Optional[str] = None
    date_created: Optional[str] = None
    date_modified: Optional[str] = None
    total: str = "0"
    billing: StorefrontAddress = StorefrontAddress()
    shipping: StorefrontAddress = StorefrontAddress()
    line_items: List[StorefrontLineItem] = []
    customer_note: Optional[str] = None


class StorefrontProduct(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    sku: Optional[str] = None
    stock_quantity: Optional[int] = None
    manage_stock: bool = False
    stock_status: Optional[str] = None
    variations: List[int] = []


class StockUpdate(BaseModel):
    id: int
    stock_quantity: int


def record_id(record: Any) -> Any:
    """The raw `id` of a platform record, readable even when the record fails validation"""
    return record.get("id") if isinstance(record, dict) else None
