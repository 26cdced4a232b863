from .product import Product
from .marketplace_order import MarketplaceOrder
from .marketplace_shipment import MarketplaceShipment
from .sync_log import SyncLog

__all__ = [
    "Product",
    "MarketplaceOrder",
    "MarketplaceShipment",
    "SyncLog",
]
