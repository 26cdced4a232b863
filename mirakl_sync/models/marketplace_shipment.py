from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mirakl_sync.db.database import Base


class MarketplaceShipment(Base):
    __tablename__ = "marketplace_shipments"
    __table_args__ = (
        CheckConstraint("tracking_number <> ''", name="chk_tracking_number_not_empty"),
        CheckConstraint("carrier_code <> ''", name="chk_carrier_code_not_empty"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    marketplace_order_id = Column(
        Integer, ForeignKey("marketplace_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mirakl_shipment_id = Column(String(100), index=True)
    tracking_number = Column(String(100), nullable=False, index=True)
    carrier_code = Column(String(50), nullable=False)
    shipped_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("MarketplaceOrder", back_populates="shipments")
