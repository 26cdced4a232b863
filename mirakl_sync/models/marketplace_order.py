from sqlalchemy import Column, String, DateTime, Integer, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mirakl_sync.db.database import Base


class MarketplaceOrder(Base):
    __tablename__ = "marketplace_orders"
    __table_args__ = (
        CheckConstraint("total_price >= 0", name="chk_total_price_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    mirakl_order_id = Column(String(100), unique=True, nullable=False, index=True)
    order_state = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255))
    shipping_address = Column(JSON)  # customer shipping details, stored as received
    order_lines = Column(JSON, nullable=False)
    total_price = Column(Integer, nullable=False)  # stored in cents
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    # Set only by local accept/ship actions, never by re-ingestion
    accepted_at = Column(DateTime(timezone=True), index=True)
    shipped_at = Column(DateTime(timezone=True), index=True)

    # Relationships
    shipments = relationship(
        "MarketplaceShipment",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="desc(MarketplaceShipment.shipped_at)",
    )
