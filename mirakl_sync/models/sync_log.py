from sqlalchemy import Column, String, DateTime, Integer, Text, CheckConstraint
from sqlalchemy.sql import func

from mirakl_sync.db.database import Base


class SyncLog(Base):
    __tablename__ = "marketplace_sync_log"
    __table_args__ = (
        CheckConstraint("status IN ('running', 'success', 'failed')", name="chk_status_valid"),
        CheckConstraint("sync_type IN ('offers', 'orders')", name="chk_sync_type_valid"),
        CheckConstraint("records_processed >= 0", name="chk_records_processed_nonnegative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    sync_type = Column(String(50), nullable=False, index=True)  # 'offers', 'orders'
    status = Column(String(20), nullable=False, index=True)  # 'running', 'success', 'failed'
    records_processed = Column(Integer, default=0)
    error_message = Column(Text)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), index=True)
