from .integration import IntegrationCRUD, SyncLogCRUD, integration_crud, sync_log_crud
from .product_mapping import ProductMappingCRUD, product_mapping_crud
from .order import OrderCRUD, order_crud
from .outbound_sync_log import OutboundSyncLogCRUD, outbound_sync_log_crud
from .api_key import ApiKeyCRUD, api_key_crud
from .webhook_queue import WebhookQueueCRUD, webhook_queue_crud

__all__ = [
    "IntegrationCRUD", "SyncLogCRUD", "ProductMappingCRUD", "OrderCRUD",
    "OutboundSyncLogCRUD", "ApiKeyCRUD", "WebhookQueueCRUD",
    "integration_crud", "sync_log_crud", "product_mapping_crud", "order_crud",
    "outbound_sync_log_crud", "api_key_crud", "webhook_queue_crud"
]
