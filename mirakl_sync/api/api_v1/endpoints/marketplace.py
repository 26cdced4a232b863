import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from mirakl_sync.api.deps import get_mirakl_client, get_scheduler
from mirakl_sync.db.database import get_db
from mirakl_sync.crud.marketplace_order import marketplace_order_crud
from mirakl_sync.crud.sync_log import sync_log_crud
from mirakl_sync.schemas.job import JobResult, SchedulerStatus
from mirakl_sync.schemas.order import (
    MarketplaceOrder,
    MarketplaceOrderDetail,
    MarketplaceOrderList,
    MarketplaceShipment,
    OrderActionResponse,
    Pagination,
    ShipmentActionResponse,
    ShipmentCreate,
)
from mirakl_sync.schemas.sync_log import MarketplaceSyncStatus, SyncType
from mirakl_sync.services.mirakl_errors import MiraklConfigurationError, MiraklError
from mirakl_sync.services.mirakl_service import MiraklClient
from mirakl_sync.services.scheduler import MarketplaceScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


def _mirakl_http_error(e: MiraklError) -> HTTPException:
    if isinstance(getattr(e, "error", e), MiraklConfigurationError):
        return HTTPException(status_code=503, detail=e.message)
    return HTTPException(status_code=502, detail=e.message)


def _job_response(result: JobResult):
    if not result.success:
        return JSONResponse(status_code=500, content=result.model_dump(mode="json"))
    return result


@router.post("/sync-offers", response_model=JobResult)
async def sync_offers(scheduler: MarketplaceScheduler = Depends(get_scheduler)):
    """Push all mapped products to Best Buy Marketplace"""
    result = await scheduler.run_job_manually("inventory-sync")
    return _job_response(result)


@router.post("/pull-orders", response_model=JobResult)
async def pull_orders(scheduler: MarketplaceScheduler = Depends(get_scheduler)):
    """Import new and updated orders from Best Buy Marketplace"""
    result = await scheduler.run_job_manually("order-pull")
    return _job_response(result)


@router.get("/orders", response_model=MarketplaceOrderList)
async def get_orders(
    state: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Get marketplace orders, newest first"""
    orders = await marketplace_order_crud.get_all(db, state=state, limit=limit, offset=offset)
    total = await marketplace_order_crud.count(db, filters={"order_state": state})
    return MarketplaceOrderList(
        orders=[MarketplaceOrder.model_validate(order) for order in orders],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(orders) < total,
        ),
    )


@router.get("/orders/{order_id}", response_model=MarketplaceOrderDetail)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single order with its shipments"""
    order = await marketplace_order_crud.get_with_shipments(db, id=order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/orders/{order_id}/accept", response_model=OrderActionResponse)
async def accept_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    client: MiraklClient = Depends(get_mirakl_client)
):
    """Accept every line of an order on Mirakl and mark it SHIPPING locally"""
    order = await marketplace_order_crud.get(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.accepted_at:
        raise HTTPException(status_code=400, detail="Order already accepted")

    try:
        await client.accept_order(order.mirakl_order_id, order.order_lines or [])
    except MiraklError as e:
        raise _mirakl_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await marketplace_order_crud.mark_accepted(db, db_obj=order)
    logger.info(f"Order {order.mirakl_order_id} accepted")

    order = await marketplace_order_crud.get_with_shipments(db, id=order_id)
    return OrderActionResponse(
        message=f"Order {order.mirakl_order_id} accepted",
        order=MarketplaceOrderDetail.model_validate(order),
    )


@router.post("/orders/{order_id}/ship", response_model=ShipmentActionResponse)
async def ship_order(
    order_id: int,
    shipment_in: ShipmentCreate,
    db: AsyncSession = Depends(get_db),
    client: MiraklClient = Depends(get_mirakl_client)
):
    """Create a shipment with tracking on Mirakl and record it locally"""
    order = await marketplace_order_crud.get(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.shipped_at:
        raise HTTPException(status_code=400, detail="Order already shipped")

    try:
        result = await client.create_shipment(
            order.mirakl_order_id,
            shipment_in.tracking_number,
            shipment_in.carrier_code,
            order.order_lines or [],
        )
    except MiraklError as e:
        raise _mirakl_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    shipment = await marketplace_order_crud.mark_shipped(db, db_obj=order, shipment=result)
    logger.info(f"Shipment created for order {order.mirakl_order_id}")

    return ShipmentActionResponse(
        message=f"Shipment created for order {order.mirakl_order_id}",
        shipment=MarketplaceShipment.model_validate(shipment),
    )


@router.get("/sync-status", response_model=MarketplaceSyncStatus)
async def get_sync_status(db: AsyncSession = Depends(get_db)):
    """Last sync times per type and pending order counts"""
    return MarketplaceSyncStatus(
        offers=await sync_log_crud.get_status(db, sync_type=SyncType.OFFERS),
        orders=await sync_log_crud.get_status(db, sync_type=SyncType.ORDERS),
        pending_orders=await marketplace_order_crud.count_pending(db),
        orders_by_state=await marketplace_order_crud.counts_by_state(db),
    )


@router.get("/scheduler", response_model=SchedulerStatus)
async def get_scheduler_status(scheduler: MarketplaceScheduler = Depends(get_scheduler)):
    return scheduler.get_status()


@router.post("/jobs/{job_name}/run", response_model=JobResult)
async def run_job(job_name: str, scheduler: MarketplaceScheduler = Depends(get_scheduler)):
    """Run a scheduled job right away"""
    try:
        result = await scheduler.run_job_manually(job_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _job_response(result)


@router.get("/config")
async def get_config(client: MiraklClient = Depends(get_mirakl_client)):
    """Mirakl client configuration, without the API key"""
    return client.get_config()
