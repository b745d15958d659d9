from .integration import Integration
from .sync_log import SyncLog
from .outbound_sync_log import OutboundSyncLog
from .product_mapping import ProductMapping
from .order import Order, OrderItem
from .api_key import ApiKey
from .webhook_queue import WebhookQueueEntry
from .warehouse import Variation, InventoryLevel, Bundle, Accessory

__all__ = [
    "Integration",
    "SyncLog",
    "OutboundSyncLog",
    "ProductMapping",
    "Order",
    "OrderItem",
    "ApiKey",
    "WebhookQueueEntry",
    "Variation",
    "InventoryLevel",
    "Bundle",
    "Accessory"
]
