"""
Mirakl API payload shapes.

Responses are validated into these models as soon as they arrive so that a
malformed body fails inside the client instead of deep inside a job.
Unknown remote fields are kept (``extra="allow"``) and stored as received.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderState(str, Enum):
    WAITING_ACCEPTANCE = "WAITING_ACCEPTANCE"
    SHIPPING = "SHIPPING"
    SHIPPED = "SHIPPED"
    TO_COLLECT = "TO_COLLECT"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"
    REFUSED = "REFUSED"
    CANCELED = "CANCELED"


# Orders pulled by the order job
OPEN_ORDER_STATES = [
    OrderState.WAITING_ACCEPTANCE,
    OrderState.SHIPPING,
    OrderState.SHIPPED,
    OrderState.TO_COLLECT,
]

# Mirakl offer state codes
STATE_CODE_AVAILABLE = "11"
STATE_CODE_OUT_OF_STOCK = "21"

CUSTOMER_NAME_FALLBACK = "N/A"


def offer_state_code(quantity: int) -> str:
    return STATE_CODE_AVAILABLE if quantity > 0 else STATE_CODE_OUT_OF_STOCK


class MiraklOrderLine(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_line_id: str
    offer_sku: Optional[str] = None
    quantity: int = 1
    price: Optional[Decimal] = None


class MiraklCustomer(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    firstname: Optional[str] = None
    lastname: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None


class MiraklOrder(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_id: str
    order_state: OrderState
    customer: Optional[MiraklCustomer] = None
    order_lines: List[MiraklOrderLine] = Field(default_factory=list)
    total_price: Decimal = Decimal("0")
    created_date: Optional[datetime] = None

    @property
    def customer_name(self) -> str:
        if self.customer and self.customer.firstname and self.customer.lastname:
            return f"{self.customer.firstname} {self.customer.lastname}"
        return CUSTOMER_NAME_FALLBACK

    @property
    def shipping_address(self) -> Dict[str, Any]:
        if self.customer and self.customer.shipping_address:
            return self.customer.shipping_address
        return {}

    def order_lines_json(self) -> List[Dict[str, Any]]:
        return [line.model_dump(mode="json") for line in self.order_lines]


class MiraklOrdersPage(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    orders: List[MiraklOrder] = Field(default_factory=list)
    total_count: int = 0


class MiraklOffer(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    offer_id: Any
    shop_sku: Optional[str] = None
    product_sku: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    state_code: Optional[str] = None
    active: Optional[bool] = None


class MiraklOffersPage(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    offers: List[MiraklOffer] = Field(default_factory=list)
    total_count: Optional[int] = None


class OfferSnapshot(BaseModel):
    """A read-only view of a local product as it is sent to Mirakl"""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    sku: Optional[str] = None
    mirakl_sku: Optional[str] = None
    mirakl_offer_id: Optional[str] = None
    price: int = Field(0, ge=0, description="Price in cents")
    quantity: int = 0
    description: Optional[str] = None
    leadtime_to_ship: Optional[int] = None
    min_quantity_alert: Optional[int] = None


class OfferImportResult(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    import_id: Optional[int] = None
    offers_sent: int = 0


class OrderAcceptResult(BaseModel):
    order_id: str
    accepted_lines: int


class ShipmentResult(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    shipment_id: Optional[str] = None
    order_id: str
    tracking_number: str
    carrier_code: str
    carrier_name: str


class InventoryUpdateResult(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    offer_id: str
    quantity: int
    state_code: str
