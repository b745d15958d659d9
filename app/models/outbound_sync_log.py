from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text
from datetime import datetime
import uuid

from app.db.database import Base
from app.models.enums import OutboundResult, enum_column

UNKNOWN = "UNKNOWN"


class OutboundSyncLog(Base):
    """One attempt to push an order status to an external platform, retried in place"""

    __tablename__ = "integration_outbound_sync_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    order_id = Column(String(36), index=True, nullable=False)
    integration_id = Column(String(36), ForeignKey("integrations.id", ondelete="SET NULL"), nullable=True)
    # Plain strings: UNKNOWN is recorded when the order or integration lookup failed
    platform_type = Column(String(50), nullable=False, default=UNKNOWN)
    channel = Column(String(50), nullable=False, default=UNKNOWN)
    old_status = Column(String(50))
    new_status = Column(String(50), nullable=False)
    result = Column(enum_column(OutboundResult), nullable=False)
    error_message = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    last_retry_at = Column(DateTime(timezone=True))
    synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
