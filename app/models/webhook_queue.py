from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON
from datetime import datetime
import uuid

from app.db.database import Base
from app.models.enums import WebhookStatus, enum_column


class WebhookQueueEntry(Base):
    __tablename__ = "webhook_queue"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    integration_id = Column(String(36), ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False)
    signature = Column(String(255))
    status = Column(enum_column(WebhookStatus), default=WebhookStatus.PENDING, nullable=False, index=True)
    error_message = Column(Text)
    processed_at = Column(DateTime(timezone=True))
    # Client-side default: dequeue order needs sub-second resolution
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
