from fastapi import Request

from mirakl_sync.services.mirakl_service import MiraklClient
from mirakl_sync.services.scheduler import MarketplaceScheduler


def get_mirakl_client(request: Request) -> MiraklClient:
    return request.app.state.mirakl_client


def get_scheduler(request: Request) -> MarketplaceScheduler:
    return request.app.state.scheduler
