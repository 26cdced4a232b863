"""
Marketplace background jobs.

InventorySyncJob pushes every mapped product to Mirakl as offers,
OrderPullJob pulls open orders and upserts them locally. Both record a
sync log entry and return a JobResult instead of raising, so the
scheduler and the API can report failures the same way.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mirakl_sync.core.money import dollars_to_cents
from mirakl_sync.crud.marketplace_order import marketplace_order_crud
from mirakl_sync.crud.product import product_crud
from mirakl_sync.crud.sync_log import sync_log_crud
from mirakl_sync.schemas.job import JobResult
from mirakl_sync.schemas.mirakl import OfferSnapshot
from mirakl_sync.schemas.sync_log import SyncType
from mirakl_sync.services.mirakl_service import MiraklClient

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


def _finish(sync_type: str, started_at: datetime, **fields) -> JobResult:
    ended_at = datetime.now(timezone.utc)
    return JobResult(
        sync_type=sync_type,
        started_at=started_at,
        ended_at=ended_at,
        duration=round((ended_at - started_at).total_seconds(), 2),
        **fields,
    )


async def _record_failure(db: AsyncSession, log_id: Optional[int], error: Exception) -> None:
    """Mark the sync log failed; a broken database here must not hide the original error"""
    try:
        await db.rollback()
        if log_id is not None:
            await sync_log_crud.fail(db, log_id=log_id, error_message=str(error))
    except Exception:
        logger.exception(f"Failed to update sync log {log_id}")


class InventorySyncJob:
    """Syncs all products with Mirakl SKUs to Best Buy Marketplace"""

    name = "inventory-sync"

    def __init__(self, client: MiraklClient, session_factory: SessionFactory):
        self.client = client
        self.session_factory = session_factory

    async def run(self) -> JobResult:
        started_at = datetime.now(timezone.utc)
        logger.info("Starting inventory sync job...")

        log_id = None

        async with self.session_factory() as db:
            try:
                sync_log = await sync_log_crud.start(db, sync_type=SyncType.OFFERS)
                log_id = sync_log.id

                products = await product_crud.get_syncable(db)

                if not products:
                    logger.info("No products with Mirakl SKU found. Skipping sync.")
                    await sync_log_crud.complete(db, log_id=log_id, records_processed=0)
                    return _finish(
                        SyncType.OFFERS, started_at, success=True, message="No products to sync"
                    )

                logger.info(f"Found {len(products)} products to sync")
                offers = [OfferSnapshot.model_validate(p) for p in products]
                await self.client.sync_offers(offers)

                await product_crud.mark_synced(db, ids=[offer.id for offer in offers])
                await sync_log_crud.complete(db, log_id=log_id, records_processed=len(offers))

            except Exception as e:
                await _record_failure(db, log_id, e)
                result = _finish(SyncType.OFFERS, started_at, success=False, error=str(e))
                logger.error(f"Inventory sync failed after {result.duration}s: {e}")
                return result

        result = _finish(
            SyncType.OFFERS,
            started_at,
            success=True,
            processed=len(offers),
            message=f"{len(offers)} offers synced successfully",
        )
        logger.info(f"Inventory sync completed: {len(offers)} products synced in {result.duration}s")
        return result


class OrderPullJob:
    """Fetches open orders from Best Buy Marketplace and stores them in the database"""

    name = "order-pull"

    def __init__(self, client: MiraklClient, session_factory: SessionFactory):
        self.client = client
        self.session_factory = session_factory

    async def run(self) -> JobResult:
        started_at = datetime.now(timezone.utc)
        logger.info("Starting order pull job...")

        imported = 0
        updated = 0
        failed = 0

        log_id = None

        async with self.session_factory() as db:
            try:
                sync_log = await sync_log_crud.start(db, sync_type=SyncType.ORDERS)
                log_id = sync_log.id

                # Incremental pull from the last successful run
                since = await sync_log_crud.get_last_successful_completion(db, sync_type=SyncType.ORDERS)
                if since:
                    logger.info(f"Fetching orders updated since: {since.isoformat()}")
                else:
                    logger.info("Fetching all orders (first sync)")

                orders = await self.client.fetch_orders(since)

                if not orders:
                    logger.info("No new orders found.")
                    await sync_log_crud.complete(db, log_id=log_id, records_processed=0)
                    return _finish(
                        SyncType.ORDERS, started_at, success=True, message="No new orders found"
                    )

                logger.info(f"Processing {len(orders)} orders...")

                for order in orders:
                    try:
                        async with db.begin_nested():
                            total_price = dollars_to_cents(order.total_price)
                            is_update = await marketplace_order_crud.upsert_from_mirakl(
                                db, order=order, total_price=total_price
                            )
                    except Exception as e:
                        failed += 1
                        logger.error(f"Error processing order {order.order_id}: {e}")
                        continue

                    if is_update:
                        updated += 1
                    else:
                        imported += 1

                await db.commit()
                await sync_log_crud.complete(db, log_id=log_id, records_processed=imported + updated)

            except Exception as e:
                await _record_failure(db, log_id, e)
                result = _finish(SyncType.ORDERS, started_at, success=False, error=str(e))
                logger.error(f"Order pull failed after {result.duration}s: {e}")
                return result

        processed = imported + updated
        result = _finish(
            SyncType.ORDERS,
            started_at,
            success=True,
            imported=imported,
            updated=updated,
            processed=processed,
            failed=failed,
            message=f"{imported} new, {updated} updated, {failed} failed",
        )
        logger.info(
            f"Order pull completed: {imported} new, {updated} updated, "
            f"{failed} failed in {result.duration}s"
        )
        return result
