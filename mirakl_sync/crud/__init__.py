from .product import ProductCRUD, product_crud
from .marketplace_order import MarketplaceOrderCRUD, marketplace_order_crud
from .sync_log import SyncLogCRUD, sync_log_crud

__all__ = [
    "ProductCRUD",
    "MarketplaceOrderCRUD",
    "SyncLogCRUD",
    "product_crud",
    "marketplace_order_crud",
    "sync_log_crud",
]
