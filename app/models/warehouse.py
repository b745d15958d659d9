"""
Warehouse-side stock tables.

Owned by the warehouse platform; the sync engine only reads them to resolve
how many units of a mapped product are available.
"""

from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from app.db.database import Base


class Variation(Base):
    __tablename__ = "variations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    product_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255))
    sku = Column(String(255), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class InventoryLevel(Base):
    """Availability ledger for consumable units, one row per product variation"""

    __tablename__ = "inventory_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "variation_id", name="uq_inventory_level_product_variation"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    product_id = Column(String(36), nullable=False, index=True)
    variation_id = Column(String(36), nullable=False)
    available = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Bundle(Base):
    __tablename__ = "bundles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(255))
    stock_quantity = Column(Integer, default=0)


class Accessory(Base):
    __tablename__ = "accessories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(255))
    stock_quantity = Column(Integer, default=0)
