from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from mirakl_sync.core.config import settings
from mirakl_sync.api.api_v1.api import api_router
from mirakl_sync.db.database import async_session_maker
from mirakl_sync.db.init_db import init_db
from mirakl_sync.services.marketplace_jobs import InventorySyncJob, OrderPullJob
from mirakl_sync.services.mirakl_service import MiraklClient
from mirakl_sync.services.scheduler import MarketplaceScheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database
    await init_db()

    client = MiraklClient.from_settings(settings)
    scheduler = MarketplaceScheduler(
        InventorySyncJob(client, async_session_maker),
        OrderPullJob(client, async_session_maker),
        api_configured=client.configured,
        inventory_interval=settings.INVENTORY_SYNC_INTERVAL,
        order_interval=settings.ORDER_PULL_INTERVAL,
    )
    app.state.mirakl_client = client
    app.state.scheduler = scheduler

    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Marketplace scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    await scheduler.stop()
    await client.aclose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Set up CORS middleware
# Allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=False,  # Can't use credentials with wildcard
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
