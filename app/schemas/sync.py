"""Result objects returned by the sync pipelines"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime

from app.models.enums import OrderStatus, OutboundResult, SyncLogStatus


class ImportOrderResult(BaseModel):
    success: bool
    external_order_id: Optional[int] = None
    order_id: Optional[str] = None
    duplicate: bool = False
    error: Optional[str] = None


class OrderImportSummary(BaseModel):
    total: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = []
    status: Optional[SyncLogStatus] = None
    sync_log_id: Optional[str] = None


class InventorySyncSummary(BaseModel):
    total: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = []
    status: Optional[SyncLogStatus] = None
    sync_log_id: Optional[str] = None


class SingleProductSyncResult(BaseModel):
    success: bool
    error: Optional[str] = None


class AutoMapSummary(BaseModel):
    mapped: int = 0
    already_mapped: int = 0
    errors: List[str] = []
    status: Optional[SyncLogStatus] = None
    sync_log_id: Optional[str] = None


class StatusSyncResult(BaseModel):
    success: bool
    sync_log_id: Optional[str] = None
    order_id: Optional[str] = None
    platform_type: str
    new_status: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retry_count: int = 0


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class BulkStatusUpdateRequest(BaseModel):
    order_ids: List[str]
    status: OrderStatus


class OutboundSyncLogResponse(BaseModel):
    id: str
    order_id: str
    integration_id: Optional[str] = None
    platform_type: str
    channel: str
    old_status: Optional[str] = None
    new_status: str
    result: OutboundResult
    error_message: Optional[str] = None
    retry_count: int
    last_retry_at: Optional[datetime] = None
    synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
