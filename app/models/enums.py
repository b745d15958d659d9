from enum import Enum

from sqlalchemy import Enum as SQLEnum


class PlatformType(str, Enum):
    WOOCOMMERCE = "woocommerce"
    WHOLESALE_APP = "wholesale_app"
    OTHER = "other"


class IntegrationSyncStatus(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class Channel(str, Enum):
    WHOLESALE = "wholesale"
    ONLINE = "online"


class OrderStatus(str, Enum):
    PROCESSING = "PROCESSING"
    READY_TO_SHIP = "READY_TO_SHIP"
    SHIPMENT_CREATED = "SHIPMENT_CREATED"
    PACKAGING = "PACKAGING"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class ProductKind(str, Enum):
    CONSUMABLE_UNIT = "consumable_unit"
    BUNDLE = "bundle"
    ACCESSORY = "accessory"


class SyncType(str, Enum):
    ORDER_IMPORT = "order_import"
    INVENTORY_EXPORT = "inventory_export"
    PRODUCT_SYNC = "product_sync"
    WEBHOOK = "webhook"
    MANUAL_SYNC = "manual_sync"


class SyncDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SyncLogStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class OutboundResult(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class WebhookStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def enum_column(enum_cls):
    """Store an enum by value in a plain VARCHAR column"""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )
