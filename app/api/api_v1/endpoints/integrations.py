from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_platform_clients, http_error
from app.core.exceptions import CommerceSyncError
from app.core.security import require_permission
from app.db.database import get_db
from app.schemas.integration import (
    ConnectionTestRequest,
    ImportOrdersRequest,
    IntegrationCreate,
    IntegrationResponse,
    IntegrationUpdate,
    SyncInventoryRequest,
    SyncLogResponse,
    WebhookRegistrationRequest,
)
from app.schemas.product_mapping import ProductMappingCreate, ProductMappingResponse
from app.schemas.sync import AutoMapSummary, InventorySyncSummary, OrderImportSummary, SingleProductSyncResult
from app.services.integration_service import IntegrationService
from app.services.inventory_sync_service import InventorySyncService
from app.services.order_import_service import OrderImportService
from app.services.platform_clients import PlatformClientPool

router = APIRouter()


@router.get("/", response_model=List[IntegrationResponse], dependencies=[Depends(require_permission("integrations:read"))])
async def get_integrations(db: AsyncSession = Depends(get_db)):
    """Get all integrations"""
    return await IntegrationService(db).get_integrations()


@router.post("/", response_model=IntegrationResponse, dependencies=[Depends(require_permission("integrations:write"))])
async def create_integration(integration_in: IntegrationCreate, db: AsyncSession = Depends(get_db)):
    """Create a new integration"""
    return await IntegrationService(db).create_integration(integration_in)


@router.post("/test-connection", dependencies=[Depends(require_permission("integrations:write"))])
async def test_connection(
    request: ConnectionTestRequest,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Check credentials against the platform before saving them"""
    try:
        connected = await IntegrationService(db, clients).test_connection(request.config)
    except CommerceSyncError as e:
        raise http_error(e)
    return {"success": connected}


@router.get("/{integration_id}", response_model=IntegrationResponse, dependencies=[Depends(require_permission("integrations:read"))])
async def get_integration(integration_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await IntegrationService(db).get_integration(integration_id)
    except CommerceSyncError as e:
        raise http_error(e)


@router.put("/{integration_id}", response_model=IntegrationResponse, dependencies=[Depends(require_permission("integrations:write"))])
async def update_integration(
    integration_id: str,
    integration_in: IntegrationUpdate,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    try:
        return await IntegrationService(db, clients).update_integration(integration_id, integration_in)
    except CommerceSyncError as e:
        raise http_error(e)


@router.delete("/{integration_id}", dependencies=[Depends(require_permission("integrations:write"))])
async def delete_integration(
    integration_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    try:
        await IntegrationService(db, clients).delete_integration(integration_id)
    except CommerceSyncError as e:
        raise http_error(e)
    return {"message": "Integration deleted successfully"}


@router.post("/{integration_id}/import-orders", response_model=OrderImportSummary, dependencies=[Depends(require_permission("orders:import"))])
async def import_orders(
    integration_id: str,
    request: Optional[ImportOrdersRequest] = None,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Pull new storefront orders into the warehouse"""
    request = request or ImportOrdersRequest()
    try:
        return await OrderImportService(db, clients).import_orders(
            integration_id,
            status=request.status,
            after=request.after,
            limit=request.limit
        )
    except CommerceSyncError as e:
        raise http_error(e)


@router.post("/{integration_id}/sync-inventory", response_model=InventorySyncSummary, dependencies=[Depends(require_permission("inventory:sync"))])
async def sync_inventory(
    integration_id: str,
    request: Optional[SyncInventoryRequest] = None,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Push warehouse availability to the storefront"""
    request = request or SyncInventoryRequest()
    try:
        return await InventorySyncService(db, clients).sync_inventory(
            integration_id, request.warehouse_product_ids
        )
    except CommerceSyncError as e:
        raise http_error(e)


@router.post(
    "/{integration_id}/sync-inventory/{warehouse_product_id}",
    response_model=SingleProductSyncResult,
    dependencies=[Depends(require_permission("inventory:sync"))]
)
async def sync_single_product(
    integration_id: str,
    warehouse_product_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    try:
        return await InventorySyncService(db, clients).sync_single_product(integration_id, warehouse_product_id)
    except CommerceSyncError as e:
        raise http_error(e)


@router.post("/{integration_id}/auto-map-products", response_model=AutoMapSummary, dependencies=[Depends(require_permission("products:write"))])
async def auto_map_products(
    integration_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Map storefront products to warehouse variations with the same SKU"""
    try:
        return await InventorySyncService(db, clients).auto_map_products_by_sku(integration_id)
    except CommerceSyncError as e:
        raise http_error(e)


@router.get("/{integration_id}/sync-logs", response_model=List[SyncLogResponse], dependencies=[Depends(require_permission("integrations:read"))])
async def get_sync_logs(integration_id: str, limit: int = 50, db: AsyncSession = Depends(get_db)):
    return await IntegrationService(db).get_sync_logs(integration_id, limit=limit)


@router.get(
    "/{integration_id}/product-mappings",
    response_model=List[ProductMappingResponse],
    dependencies=[Depends(require_permission("products:read"))]
)
async def get_product_mappings(integration_id: str, db: AsyncSession = Depends(get_db)):
    return await IntegrationService(db).get_product_mappings(integration_id)


@router.post(
    "/{integration_id}/product-mappings",
    response_model=ProductMappingResponse,
    dependencies=[Depends(require_permission("products:write"))]
)
async def create_product_mapping(
    integration_id: str,
    mapping_in: ProductMappingCreate,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await IntegrationService(db).create_product_mapping(integration_id, mapping_in)
    except CommerceSyncError as e:
        raise http_error(e)


@router.delete(
    "/{integration_id}/product-mappings/{mapping_id}",
    dependencies=[Depends(require_permission("products:write"))]
)
async def delete_product_mapping(integration_id: str, mapping_id: str, db: AsyncSession = Depends(get_db)):
    service = IntegrationService(db)
    mapping = await service.find_mapping_by_id(mapping_id)
    if not mapping or mapping.integration_id != integration_id:
        raise HTTPException(status_code=404, detail="Product mapping not found")
    await service.delete_product_mapping(mapping_id)
    return {"message": "Product mapping deleted successfully"}


@router.post("/{integration_id}/webhooks", dependencies=[Depends(require_permission("integrations:write"))])
async def register_webhook(
    integration_id: str,
    request: WebhookRegistrationRequest,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    """Register a storefront webhook that delivers to this service"""
    try:
        return await IntegrationService(db, clients).register_webhook(
            integration_id, request.topic, request.delivery_url
        )
    except CommerceSyncError as e:
        raise http_error(e)
