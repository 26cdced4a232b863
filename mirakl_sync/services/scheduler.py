"""
Marketplace job scheduler.

Each job runs in its own asyncio task that waits for its interval and then
awaits ``job.run()``, forever, until :meth:`MarketplaceScheduler.stop`
cancels it. A crashing run is logged and the loop carries on.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict

from mirakl_sync.schemas.job import JobResult, SchedulerStatus
from mirakl_sync.services.marketplace_jobs import InventorySyncJob, OrderPullJob

logger = logging.getLogger(__name__)

DEFAULT_INVENTORY_SYNC_INTERVAL = 30 * 60  # seconds
DEFAULT_ORDER_PULL_INTERVAL = 15 * 60  # seconds

JOB_ALIASES = {
    "inventory-sync": "inventory-sync",
    "sync": "inventory-sync",
    "order-pull": "order-pull",
    "orders": "order-pull",
}


class MarketplaceScheduler:
    def __init__(
        self,
        inventory_job: InventorySyncJob,
        order_job: OrderPullJob,
        *,
        api_configured: bool,
        inventory_interval: float = DEFAULT_INVENTORY_SYNC_INTERVAL,
        order_interval: float = DEFAULT_ORDER_PULL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.jobs = {
            "inventory-sync": inventory_job,
            "order-pull": order_job,
        }
        self.intervals = {
            "inventory-sync": inventory_interval,
            "order-pull": order_interval,
        }
        self.api_configured = api_configured
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def _is_active(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def start(self) -> bool:
        """Schedule both jobs. Returns False when Mirakl credentials are missing"""
        if not self.api_configured:
            logger.warning(
                "Mirakl API credentials not configured. Marketplace jobs will not be scheduled. "
                "Set MIRAKL_API_KEY, MIRAKL_API_URL, and MIRAKL_SHOP_ID to enable."
            )
            return False

        if self.running:
            logger.info("Marketplace scheduler already running")
            return True

        logger.info("Starting Marketplace Job Scheduler...")
        for name, interval in self.intervals.items():
            self._tasks[name] = asyncio.create_task(self._loop(name, interval), name=f"marketplace-{name}")
            logger.info(f"Scheduled: {name} every {interval}s")
        return True

    async def stop(self) -> None:
        if not self._tasks:
            return

        logger.info("Stopping Marketplace Job Scheduler...")
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("All marketplace jobs stopped.")

    async def _loop(self, name: str, interval: float) -> None:
        job = self.jobs[name]
        while True:
            await self._sleep(interval)
            logger.info(f"Triggered: {name}")
            try:
                result = await job.run()
            except Exception as e:
                logger.exception(f"{name} job crashed: {e}")
                continue

            if not result.success:
                logger.error(f"{name} job failed: {result.error}")

    async def run_job_manually(self, job_name: str) -> JobResult:
        name = JOB_ALIASES.get(job_name)
        if name is None:
            raise ValueError(f"Unknown job: {job_name}. Use 'inventory-sync' or 'order-pull'")

        logger.info(f"Manually running: {name}")
        return await self.jobs[name].run()

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self.running,
            inventory_sync_active=self._is_active("inventory-sync"),
            order_pull_active=self._is_active("order-pull"),
            api_configured=self.api_configured,
        )
