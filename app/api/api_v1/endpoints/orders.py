from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_platform_clients, http_error
from app.core.exceptions import CommerceSyncError
from app.core.security import require_permission
from app.db.database import get_db
from app.schemas.sync import (
    BulkStatusUpdateRequest,
    OutboundSyncLogResponse,
    StatusSyncResult,
    StatusUpdateRequest,
)
from app.services.order_status_sync_service import OrderStatusSyncService
from app.services.platform_clients import PlatformClientPool

router = APIRouter()


@router.patch("/{order_id}/status", response_model=StatusSyncResult, dependencies=[Depends(require_permission("orders:write"))])
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Update an order's status and propagate it to the order's platform"""
    try:
        return await OrderStatusSyncService(db, clients).update_status(order_id, request.status)
    except CommerceSyncError as e:
        raise http_error(e)


@router.post(
    "/bulk-update-status",
    response_model=List[StatusSyncResult],
    dependencies=[Depends(require_permission("orders:write"))]
)
async def bulk_update_order_status(
    request: BulkStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    if not request.order_ids:
        raise HTTPException(status_code=400, detail="order_ids must not be empty")
    return await OrderStatusSyncService(db, clients).bulk_update_status(request.order_ids, request.status)


@router.post(
    "/{order_id}/retry-sync/{sync_log_id}",
    response_model=StatusSyncResult,
    dependencies=[Depends(require_permission("orders:write"))]
)
async def retry_order_sync(
    order_id: str,
    sync_log_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    service = OrderStatusSyncService(db, clients)
    history = await service.get_sync_history(order_id)
    if not any(sync_log.id == sync_log_id for sync_log in history):
        raise HTTPException(status_code=404, detail="Sync log not found for this order")
    try:
        return await service.retry(sync_log_id)
    except CommerceSyncError as e:
        raise http_error(e)


@router.get(
    "/{order_id}/sync-history",
    response_model=List[OutboundSyncLogResponse],
    dependencies=[Depends(require_permission("orders:read"))]
)
async def get_order_sync_history(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    return await OrderStatusSyncService(db, clients).get_sync_history(order_id)


@router.get(
    "/failed-syncs/list",
    response_model=List[OutboundSyncLogResponse],
    dependencies=[Depends(require_permission("orders:read"))]
)
async def get_failed_syncs(
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Failed status pushes that still have retries left, oldest first"""
    return await OrderStatusSyncService(db, clients).get_failed_syncs(limit)


@router.post(
    "/failed-syncs/retry",
    response_model=List[StatusSyncResult],
    dependencies=[Depends(require_permission("orders:write"))]
)
async def retry_failed_syncs(
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    return await OrderStatusSyncService(db, clients).retry_failed(limit)
