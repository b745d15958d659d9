from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
import uuid

from app.db.database import Base

WILDCARD_PERMISSION = "*"


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(255), nullable=False)
    key_hash = Column(String(64), unique=True, nullable=False, index=True)  # sha256 hex
    key_prefix = Column(String(16), nullable=False)
    permissions = Column(JSON, nullable=False, default=list)  # ["orders:read", ...] or ["*"]
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    created_by = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def allows(self, permission: str) -> bool:
        permissions = self.permissions or []
        return WILDCARD_PERMISSION in permissions or permission in permissions
