from .credentials import (
    PlatformCredentials,
    WooCommerceCredentials,
    WholesaleAppCredentials,
    OtherPlatformCredentials,
)
from .platform import StorefrontOrder, StorefrontProduct, StockUpdate

__all__ = [
    "PlatformCredentials", "WooCommerceCredentials", "WholesaleAppCredentials", "OtherPlatformCredentials",
    "StorefrontOrder", "StorefrontProduct", "StockUpdate"
]
