from typing import Optional
from pydantic import BaseModel
from datetime import datetime


class JobResult(BaseModel):
    """Outcome of one scheduled or manual job run"""
    success: bool
    sync_type: str
    imported: int = 0
    updated: int = 0
    processed: int = 0
    failed: int = 0
    duration: float = 0.0  # seconds
    started_at: datetime
    ended_at: datetime
    message: Optional[str] = None
    error: Optional[str] = None


class SchedulerStatus(BaseModel):
    running: bool
    inventory_sync_active: bool
    order_pull_active: bool
    api_configured: bool
