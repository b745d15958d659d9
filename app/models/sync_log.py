from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.db.database import Base
from app.models.enums import SyncType, SyncDirection, SyncLogStatus, enum_column


class SyncLog(Base):
    __tablename__ = "integration_sync_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    integration_id = Column(String(36), ForeignKey("integrations.id", ondelete="CASCADE"), index=True)
    sync_type = Column(enum_column(SyncType), nullable=False)
    direction = Column(enum_column(SyncDirection), nullable=False)
    status = Column(enum_column(SyncLogStatus), default=SyncLogStatus.RUNNING, nullable=False)
    records_processed = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)
    details = Column(JSON)
    error_details = Column(JSON)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

    # Relationships
    integration = relationship("Integration", back_populates="sync_logs")
