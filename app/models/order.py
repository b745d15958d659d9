from sqlalchemy import Column, String, DateTime, DECIMAL, Integer, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
import uuid

from app.db.database import Base
from app.models.enums import Channel, OrderStatus, enum_column


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("integration_id", "external_order_id", name="uq_orders_external_ref"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    order_code = Column(String(255), nullable=False)
    channel = Column(enum_column(Channel), nullable=False)
    status = Column(enum_column(OrderStatus), default=OrderStatus.PROCESSING, nullable=False)
    receiver = Column(String(255))
    address = Column(String(500))
    address_line2 = Column(String(500))
    city = Column(String(255))
    state = Column(String(255))
    postal_code = Column(String(50))
    country = Column(String(100))
    email = Column(String(255))
    phone = Column(String(100))
    order_total = Column(DECIMAL(12, 2))
    notes = Column(Text)
    order_date = Column(String(64))  # as reported by the platform
    external_order_id = Column(String(64), index=True)
    integration_id = Column(String(36), ForeignKey("integrations.id", ondelete="SET NULL"), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    integration = relationship("Integration")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @validates("channel")
    def _freeze_channel(self, key, value):
        # channel decides the only platform this order may ever be written to
        if self.channel is not None and Channel(value) != self.channel:
            raise ValueError("Order channel cannot be changed after creation")
        return value


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(255))
    item_name = Column(String(500))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(DECIMAL(12, 2))
    total_price = Column(DECIMAL(12, 2))
    external_product_id = Column(String(64))
    external_variation_id = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="items")
