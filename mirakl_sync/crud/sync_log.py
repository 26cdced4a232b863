from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, func, select, update

from mirakl_sync.crud.base import CRUDBase
from mirakl_sync.models.sync_log import SyncLog
from mirakl_sync.schemas.sync_log import SyncStatus, SyncTypeStatus


class SyncLogCRUD(CRUDBase[SyncLog, BaseModel]):
    async def start(self, db: AsyncSession, *, sync_type: str) -> SyncLog:
        """Open a running log entry and commit it right away"""
        sync_log = SyncLog(
            sync_type=sync_type,
            status=SyncStatus.RUNNING,
            records_processed=0,
            started_at=datetime.now(timezone.utc),
        )
        db.add(sync_log)
        await db.commit()
        await db.refresh(sync_log)
        return sync_log

    async def _close(self, db: AsyncSession, log_id: int, **values) -> None:
        await db.execute(
            update(SyncLog)
            .where(SyncLog.id == log_id)
            .values(completed_at=datetime.now(timezone.utc), **values)
        )
        await db.commit()

    async def complete(self, db: AsyncSession, *, log_id: int, records_processed: int) -> None:
        await self._close(db, log_id, status=SyncStatus.SUCCESS, records_processed=records_processed)

    async def fail(self, db: AsyncSession, *, log_id: int, error_message: str) -> None:
        await self._close(db, log_id, status=SyncStatus.FAILED, error_message=error_message)

    async def get_last_successful_completion(self, db: AsyncSession, *, sync_type: str) -> Optional[datetime]:
        """Completion time of the latest successful run, used as the incremental watermark"""
        result = await db.execute(
            select(func.max(SyncLog.completed_at)).filter(
                SyncLog.sync_type == sync_type,
                SyncLog.status == SyncStatus.SUCCESS,
            )
        )
        return result.scalar()

    async def get_status(self, db: AsyncSession, *, sync_type: str) -> SyncTypeStatus:
        finished = await db.execute(
            select(func.max(SyncLog.completed_at), func.max(SyncLog.started_at)).filter(
                SyncLog.sync_type == sync_type,
                SyncLog.status.in_([SyncStatus.SUCCESS, SyncStatus.FAILED]),
            )
        )
        last_sync, last_started = finished.one()

        latest = await db.execute(
            select(SyncLog.status)
            .filter(SyncLog.sync_type == sync_type)
            .order_by(desc(SyncLog.started_at), desc(SyncLog.id))
            .limit(1)
        )
        return SyncTypeStatus(
            last_sync=last_sync,
            last_started=last_started,
            last_status=latest.scalar_one_or_none(),
        )


sync_log_crud = SyncLogCRUD(SyncLog)
