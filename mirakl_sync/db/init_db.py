from sqlalchemy.ext.asyncio import AsyncEngine

from mirakl_sync.db.database import engine as default_engine, Base
from mirakl_sync.models import *  # Import all models


async def init_db(engine: AsyncEngine = None) -> None:
    """Initialize database tables"""
    async with (engine or default_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
