from .mirakl import MiraklOrder, MiraklOrderLine, MiraklOffer, OfferSnapshot, OrderState
from .order import MarketplaceOrder, MarketplaceOrderDetail, MarketplaceShipment, ShipmentCreate
from .product import ProductMapping, ProductMappingUpdate, BulkMappingRequest, MappingStats
from .sync_log import SyncLog, SyncType, SyncStatus
from .job import JobResult, SchedulerStatus

__all__ = [
    "MiraklOrder", "MiraklOrderLine", "MiraklOffer", "OfferSnapshot", "OrderState",
    "MarketplaceOrder", "MarketplaceOrderDetail", "MarketplaceShipment", "ShipmentCreate",
    "ProductMapping", "ProductMappingUpdate", "BulkMappingRequest", "MappingStats",
    "SyncLog", "SyncType", "SyncStatus",
    "JobResult", "SchedulerStatus",
]
