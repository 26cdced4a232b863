from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class MarketplaceShipment(BaseModel):
    id: int
    mirakl_shipment_id: Optional[str] = None
    tracking_number: str
    carrier_code: str
    shipped_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShipmentCreate(BaseModel):
    tracking_number: str = Field(..., min_length=1)
    carrier_code: str = Field(..., min_length=1)


class MarketplaceOrder(BaseModel):
    id: int
    mirakl_order_id: str
    order_state: str
    customer_name: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    order_lines: List[Dict[str, Any]] = []
    total_price: int  # cents
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MarketplaceOrderDetail(MarketplaceOrder):
    shipments: List[MarketplaceShipment] = []


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class MarketplaceOrderList(BaseModel):
    orders: List[MarketplaceOrder]
    pagination: Pagination


class OrderActionResponse(BaseModel):
    success: bool = True
    message: str
    order: MarketplaceOrderDetail


class ShipmentActionResponse(BaseModel):
    success: bool = True
    message: str
    shipment: MarketplaceShipment
