from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime

from app.models.enums import (
    PlatformType,
    IntegrationSyncStatus,
    SyncType,
    SyncDirection,
    SyncLogStatus,
)
from app.schemas.credentials import PlatformCredentials


class IntegrationBase(BaseModel):
    name: str
    platform_type: PlatformType
    is_active: bool = True


class IntegrationCreate(IntegrationBase):
    config: PlatformCredentials

    @model_validator(mode="after")
    def config_matches_platform(self):
        if self.config.platform_type != self.platform_type.value:
            raise ValueError(
                f"config is for {self.config.platform_type}, integration is {self.platform_type.value}"
            )
        return self


class IntegrationUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    config: Optional[PlatformCredentials] = None


class IntegrationResponse(IntegrationBase):
    """Integration as exposed over the API; credentials are never echoed back"""

    id: str
    sync_status: IntegrationSyncStatus
    last_sync_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConnectionTestRequest(BaseModel):
    config: PlatformCredentials


class SyncLogResponse(BaseModel):
    id: str
    integration_id: str
    sync_type: SyncType
    direction: SyncDirection
    status: SyncLogStatus
    records_processed: int = 0
    records_failed: int = 0
    details: Optional[Dict[str, Any]] = None
    error_details: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WebhookRegistrationRequest(BaseModel):
    topic: str
    delivery_url: str


class ImportOrdersRequest(BaseModel):
    status: Optional[str] = None
    after: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class SyncInventoryRequest(BaseModel):
    warehouse_product_ids: Optional[List[str]] = None
