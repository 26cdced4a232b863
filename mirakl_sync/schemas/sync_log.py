from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime


class SyncType:
    OFFERS = "offers"
    ORDERS = "orders"


class SyncStatus:
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SyncLog(BaseModel):
    id: int
    sync_type: str
    status: str
    records_processed: Optional[int] = 0
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SyncTypeStatus(BaseModel):
    last_sync: Optional[datetime] = None
    last_started: Optional[datetime] = None
    last_status: Optional[str] = None


class MarketplaceSyncStatus(BaseModel):
    offers: SyncTypeStatus
    orders: SyncTypeStatus
    pending_orders: int
    orders_by_state: Dict[str, int]
