from sqlalchemy import Column, String, Text, Integer, DateTime, CheckConstraint
from sqlalchemy.sql import func

from mirakl_sync.db.database import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_products_price_nonnegative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Integer, nullable=False, default=0)  # stored in cents
    quantity = Column(Integer, nullable=False, default=0)

    # Best Buy Marketplace (Mirakl) mapping
    mirakl_sku = Column(String(100), index=True)
    mirakl_offer_id = Column(String(100), index=True)
    bestbuy_category_id = Column(String(50))
    leadtime_to_ship = Column(Integer)  # days, client default applies when empty
    min_quantity_alert = Column(Integer)
    last_synced_at = Column(DateTime(timezone=True), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
