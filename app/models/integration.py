from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pydantic import TypeAdapter
import uuid

from app.db.database import Base
from app.models.enums import PlatformType, IntegrationSyncStatus, enum_column
from app.schemas.credentials import PlatformCredentials

credentials_adapter = TypeAdapter(PlatformCredentials)


class Integration(Base):
    __tablename__ = "integrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    platform_type = Column(enum_column(PlatformType), nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    config = Column(JSON, nullable=False)  # serialized PlatformCredentials
    last_sync_at = Column(DateTime(timezone=True))
    sync_status = Column(
        enum_column(IntegrationSyncStatus),
        default=IntegrationSyncStatus.DISCONNECTED,
        nullable=False
    )
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    sync_logs = relationship("SyncLog", back_populates="integration", cascade="all, delete-orphan")
    product_mappings = relationship("ProductMapping", back_populates="integration", cascade="all, delete-orphan")

    @property
    def credentials(self) -> PlatformCredentials:
        """Typed view over the stored config blob"""
        return credentials_adapter.validate_python(self.config)
