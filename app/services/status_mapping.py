"""
Order status vocabularies and the fixed tables between them.

These tables are shared contracts with the external platforms and must not
drift. Every internal status has to appear in every outbound table; a gap is
reported when this module is imported.
"""

from enum import Enum
from typing import Dict, Optional

from app.models.enums import Channel, OrderStatus, PlatformType


class WooCommerceStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class WholesaleAppStatus(str, Enum):
    PROCESSING = "processing"
    IN_TRANSIT = "in-transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Storefront -> warehouse. Statuses not listed here import as PROCESSING.
INBOUND_STOREFRONT_STATUS: Dict[str, OrderStatus] = {
    WooCommerceStatus.PENDING.value: OrderStatus.PROCESSING,
    WooCommerceStatus.PROCESSING.value: OrderStatus.PROCESSING,
    WooCommerceStatus.ON_HOLD.value: OrderStatus.PROCESSING,
    WooCommerceStatus.COMPLETED.value: OrderStatus.DELIVERED,
    WooCommerceStatus.CANCELLED.value: OrderStatus.CANCELLED,
    WooCommerceStatus.FAILED.value: OrderStatus.CANCELLED,
    WooCommerceStatus.REFUNDED.value: OrderStatus.RETURNED,
}

WOOCOMMERCE_STATUS: Dict[OrderStatus, WooCommerceStatus] = {
    OrderStatus.PROCESSING: WooCommerceStatus.PROCESSING,
    OrderStatus.READY_TO_SHIP: WooCommerceStatus.PROCESSING,
    OrderStatus.SHIPMENT_CREATED: WooCommerceStatus.PROCESSING,
    OrderStatus.PACKAGING: WooCommerceStatus.PROCESSING,
    OrderStatus.SHIPPED: WooCommerceStatus.COMPLETED,
    OrderStatus.IN_TRANSIT: WooCommerceStatus.COMPLETED,
    OrderStatus.DELIVERED: WooCommerceStatus.COMPLETED,
    OrderStatus.CANCELLED: WooCommerceStatus.CANCELLED,
    OrderStatus.RETURNED: WooCommerceStatus.REFUNDED,
}

# The wholesale app tracks transit separately; the storefront has no such state
WHOLESALE_APP_STATUS: Dict[OrderStatus, WholesaleAppStatus] = {
    OrderStatus.PROCESSING: WholesaleAppStatus.PROCESSING,
    OrderStatus.READY_TO_SHIP: WholesaleAppStatus.PROCESSING,
    OrderStatus.SHIPMENT_CREATED: WholesaleAppStatus.PROCESSING,
    OrderStatus.PACKAGING: WholesaleAppStatus.PROCESSING,
    OrderStatus.SHIPPED: WholesaleAppStatus.COMPLETED,
    OrderStatus.IN_TRANSIT: WholesaleAppStatus.IN_TRANSIT,
    OrderStatus.DELIVERED: WholesaleAppStatus.COMPLETED,
    OrderStatus.CANCELLED: WholesaleAppStatus.CANCELLED,
    OrderStatus.RETURNED: WholesaleAppStatus.REFUNDED,
}

CHANNEL_PLATFORM: Dict[Channel, PlatformType] = {
    Channel.WHOLESALE: PlatformType.WHOLESALE_APP,
    Channel.ONLINE: PlatformType.WOOCOMMERCE,
}

OUTBOUND_TABLES = {
    PlatformType.WOOCOMMERCE: WOOCOMMERCE_STATUS,
    PlatformType.WHOLESALE_APP: WHOLESALE_APP_STATUS,
}


def _check_exhaustive() -> None:
    for platform_type, table in OUTBOUND_TABLES.items():
        missing = [status.value for status in OrderStatus if status not in table]
        if missing:
            raise RuntimeError(f"No {platform_type.value} status for: {', '.join(missing)}")
    missing_channels = [channel.value for channel in Channel if channel not in CHANNEL_PLATFORM]
    if missing_channels:
        raise RuntimeError(f"No platform assigned to channel(s): {', '.join(missing_channels)}")


_check_exhaustive()


def map_storefront_status(external_status: Optional[str]) -> OrderStatus:
    return INBOUND_STOREFRONT_STATUS.get((external_status or "").lower(), OrderStatus.PROCESSING)


def platform_for_channel(channel: Channel) -> PlatformType:
    return CHANNEL_PLATFORM[Channel(channel)]


def to_platform_status(platform_type: PlatformType, status: OrderStatus) -> str:
    table = OUTBOUND_TABLES.get(PlatformType(platform_type))
    if table is None:
        raise KeyError(f"No outbound status table for {platform_type}")
    return table[OrderStatus(status)].value
