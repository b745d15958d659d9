from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base
from app.models.enums import ProductKind, enum_column


class ProductMapping(Base):
    __tablename__ = "product_mappings"
    __table_args__ = (
        UniqueConstraint(
            "integration_id", "external_product_id", "external_variation_id",
            name="uq_product_mapping_external"
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    integration_id = Column(String(36), ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_product_id = Column(String(36), nullable=False, index=True)
    warehouse_product_kind = Column(enum_column(ProductKind), nullable=False)
    warehouse_variation_id = Column(String(36))
    external_product_id = Column(String(64), nullable=False)
    external_variation_id = Column(String(64))
    sku = Column(String(255), index=True)
    sync_inventory = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    integration = relationship("Integration", back_populates="product_mappings")
