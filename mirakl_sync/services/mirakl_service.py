"""
Best Buy Marketplace (Mirakl) Integration Service
Handles offers, orders, and shipment management

Every call goes through retry_with_backoff. Order pages are retried one
page at a time, so a failure on page 3 does not refetch pages 1 and 2.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from mirakl_sync.core.money import cents_to_dollars
from mirakl_sync.services.mirakl_errors import (
    MiraklConfigurationError,
    MiraklError,
    MiraklUnclassifiedError,
    OfferSyncError,
    OrderAcceptError,
    ShipmentCreationError,
    classify_error,
    classify_response,
)
from mirakl_sync.services.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    retry_with_backoff,
)
from mirakl_sync.schemas.mirakl import (
    OPEN_ORDER_STATES,
    InventoryUpdateResult,
    MiraklOffer,
    MiraklOffersPage,
    MiraklOrder,
    MiraklOrderLine,
    MiraklOrdersPage,
    OfferImportResult,
    OfferSnapshot,
    OrderAcceptResult,
    ShipmentResult,
    offer_state_code,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")

ORDERS_PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_DELAY = 0.2  # 200ms delay = max 5 requests/second

DEFAULT_MIN_QUANTITY_ALERT = 5
DEFAULT_LEADTIME_TO_SHIP = 2

CARRIER_NAMES = {
    "UPS": "United Parcel Service",
    "USPS": "United States Postal Service",
    "FEDEX": "FedEx",
    "FEDEX_GROUND": "FedEx Ground",
    "FEDEX_EXPRESS": "FedEx Express",
    "DHL": "DHL Express",
    "DHL_GLOBAL": "DHL Global Mail",
    "ONTRAC": "OnTrac",
    "LASERSHIP": "LaserShip",
}

OrderLineLike = Union[MiraklOrderLine, Dict[str, Any]]


def get_carrier_name(carrier_code: str) -> str:
    """Map a carrier code (e.g. 'UPS') to the full name Mirakl expects"""
    return CARRIER_NAMES.get(carrier_code, carrier_code)


def format_mirakl_datetime(value: Union[datetime, str]) -> str:
    """ISO-8601 in UTC with milliseconds, naive datetimes are taken as UTC"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _now_iso() -> str:
    return format_mirakl_datetime(datetime.now(timezone.utc))


def get_order_line_id(line: OrderLineLike) -> str:
    if isinstance(line, dict):
        line_id = line.get("order_line_id") or line.get("id")
    else:
        line_id = getattr(line, "order_line_id", None) or getattr(line, "id", None)
    if not line_id:
        raise ValueError(f"Order line has no order_line_id: {line!r}")
    return str(line_id)


def _get_line_quantity(line: OrderLineLike) -> int:
    quantity = line.get("quantity") if isinstance(line, dict) else getattr(line, "quantity", None)
    return quantity or 1


class MiraklClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        shop_id: Optional[str] = None,
        *,
        max_retries: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        page_delay: float = DEFAULT_PAGE_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.shop_id = shop_id
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.page_delay = page_delay
        self._sleep = sleep

        if not self.configured:
            logger.warning("Mirakl API credentials not configured. Check environment variables.")

        self.http_client = httpx.AsyncClient(
            base_url=api_url or "",
            headers={
                "Authorization": api_key or "",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "MiraklClient":
        return cls(
            settings.MIRAKL_API_URL,
            settings.MIRAKL_API_KEY,
            settings.MIRAKL_SHOP_ID,
            max_retries=settings.MIRAKL_MAX_RETRIES,
            base_delay=settings.MIRAKL_BASE_DELAY,
            timeout=settings.MIRAKL_TIMEOUT,
            page_delay=settings.MIRAKL_PAGE_DELAY,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.shop_id)

    def get_config(self) -> Dict[str, Any]:
        """Configuration status, without the API key itself"""
        return {
            "configured": self.configured,
            "api_url": self.api_url,
            "shop_id": self.shop_id,
            "has_api_key": bool(self.api_key),
            "max_retries": self.max_retries,
            "base_delay": self.base_delay,
        }

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> Any:
        """Send one request and return the decoded JSON body (None for empty bodies)"""
        if not self.configured:
            raise MiraklConfigurationError(
                f"Mirakl API credentials not configured for {operation}", operation=operation
            )

        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise classify_error(operation, remote_message=str(e) or type(e).__name__) from e

        if response.is_error:
            error = classify_response(response, operation)
            logger.debug(f"Mirakl {method} {path} -> {response.status_code}: {response.text}")
            raise error

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise MiraklUnclassifiedError(
                f"Mirakl {operation} failed: response is not valid JSON",
                status_code=response.status_code,
                operation=operation,
            ) from e

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, operation: str) -> ModelT:
        try:
            return model.model_validate(data if data is not None else {})
        except ValidationError as e:
            raise MiraklUnclassifiedError(
                f"Mirakl {operation} failed: malformed response ({e.error_count()} invalid fields)",
                operation=operation,
                remote_message=str(e),
            ) from e

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry_with_backoff(
            operation,
            max_attempts=self.max_retries,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def build_offer_payload(self, offer: OfferSnapshot) -> Dict[str, Any]:
        product_id = offer.mirakl_sku or offer.sku
        if not product_id:
            raise ValueError(f"Product {offer.id} has neither a Mirakl SKU nor a SKU")

        payload = {
            "product-id": product_id,
            "product-id-type": "SHOP_SKU",
            "shop-id": self.shop_id,
            "price": cents_to_dollars(offer.price),
            "quantity": offer.quantity or 0,
            "state-code": offer_state_code(offer.quantity or 0),
            "min-quantity-alert": offer.min_quantity_alert or DEFAULT_MIN_QUANTITY_ALERT,
            "available-start-date": _now_iso(),
            "description": offer.description or "",
            "leadtime-to-ship": offer.leadtime_to_ship or DEFAULT_LEADTIME_TO_SHIP,
        }
        if offer.mirakl_offer_id:
            payload["offer-id"] = offer.mirakl_offer_id
        return payload

    async def sync_offers(self, products: Iterable[Any]) -> OfferImportResult:
        """Send all offers to Mirakl as a single batch"""
        offers = [
            p if isinstance(p, OfferSnapshot) else OfferSnapshot.model_validate(p)
            for p in products
        ]
        body = {"offers": [self.build_offer_payload(offer) for offer in offers]}
        operation = "offer sync"

        logger.info(f"Syncing {len(offers)} offers to Mirakl...")

        async def send() -> OfferImportResult:
            data = await self._request("POST", "/api/offers", operation, json=body)
            return self._parse(OfferImportResult, data, operation)

        try:
            result = await self._with_retry(send)
        except MiraklError as e:
            logger.error(f"Error syncing offers to Mirakl: {e}")
            raise OfferSyncError(e) from e

        result.offers_sent = len(offers)
        logger.info(f"Offer sync successful. Synced {len(offers)} offers.")
        return result

    async def get_offer_by_sku(self, sku: str) -> Optional[MiraklOffer]:
        """Look up an offer by shop SKU, None when Mirakl has no match"""
        operation = f"offer fetch (SKU: {sku})"

        async def fetch() -> MiraklOffersPage:
            data = await self._request(
                "GET",
                "/api/offers",
                operation,
                params={"product_id": sku, "product_id_type": "SHOP_SKU"},
            )
            return self._parse(MiraklOffersPage, data, operation)

        try:
            page = await self._with_retry(fetch)
        except MiraklError as e:
            logger.error(f"Error fetching offer for SKU {sku}: {e}")
            raise

        return page.offers[0] if page.offers else None

    async def update_inventory(self, offer_id: str, quantity: int) -> InventoryUpdateResult:
        operation = f"inventory update ({offer_id})"
        state_code = offer_state_code(quantity)

        logger.info(f"Updating inventory for offer {offer_id} to {quantity}...")

        async def send() -> Any:
            return await self._request(
                "PUT",
                f"/api/offers/{offer_id}",
                operation,
                json={"quantity": quantity, "state-code": state_code},
            )

        try:
            data = await self._with_retry(send)
        except MiraklError as e:
            logger.error(f"Error updating inventory for offer {offer_id}: {e}")
            raise

        logger.info(f"Inventory updated for offer {offer_id}")
        return self._parse(
            InventoryUpdateResult,
            {
                **(data if isinstance(data, dict) else {}),
                "offer_id": str(offer_id),
                "quantity": quantity,
                "state_code": state_code,
            },
            operation,
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def fetch_orders(self, since: Optional[Union[datetime, str]] = None) -> List[MiraklOrder]:
        """
        Fetch all open orders, page by page.

        Stops when the reported total is reached or a page comes back short,
        whichever happens first.
        """
        operation = "order fetch"
        params: Dict[str, Any] = {
            "order_state_codes": ",".join(state.value for state in OPEN_ORDER_STATES),
            "sort": "dateCreated",
            "max": ORDERS_PAGE_SIZE,
        }
        if since:
            params["start_update_date"] = format_mirakl_datetime(since)
            logger.info(f"Fetching orders from Mirakl updated since {params['start_update_date']}...")
        else:
            logger.info("Fetching orders from Mirakl...")

        all_orders: List[MiraklOrder] = []
        offset = 0
        page_number = 1

        while True:
            page_params = {**params, "offset": offset}

            async def fetch_page() -> MiraklOrdersPage:
                data = await self._request("GET", "/api/orders", operation, params=page_params)
                return self._parse(MiraklOrdersPage, data, operation)

            try:
                page = await self._with_retry(fetch_page)
            except MiraklError as e:
                logger.error(f"Error fetching orders from Mirakl (page {page_number}): {e}")
                raise

            all_orders.extend(page.orders)
            logger.info(
                f"Page {page_number}: Fetched {len(page.orders)} orders "
                f"({len(all_orders)}/{page.total_count} total)"
            )

            # The offset follows Mirakl's page contract even when a page comes back short
            offset += ORDERS_PAGE_SIZE
            has_more = offset < page.total_count and len(page.orders) == ORDERS_PAGE_SIZE
            if not has_more:
                break

            page_number += 1
            await self._sleep(self.page_delay)

        logger.info(f"Fetched {len(all_orders)} orders total from Mirakl")
        return all_orders

    async def accept_order(self, order_id: str, order_lines: Iterable[OrderLineLike]) -> OrderAcceptResult:
        """Accept every given line of an order"""
        operation = f"order acceptance ({order_id})"
        body = {
            "order_lines": [
                {"order_line_id": get_order_line_id(line), "accepted": True, "can_ship": True}
                for line in order_lines
            ]
        }

        logger.info(f"Accepting order {order_id}...")

        async def send() -> Any:
            return await self._request("PUT", f"/api/orders/{order_id}/accept", operation, json=body)

        try:
            await self._with_retry(send)
        except MiraklError as e:
            logger.error(f"Error accepting order {order_id}: {e}")
            raise OrderAcceptError(e) from e

        logger.info(f"Order {order_id} accepted successfully")
        return OrderAcceptResult(order_id=order_id, accepted_lines=len(body["order_lines"]))

    async def create_shipment(
        self,
        order_id: str,
        tracking_number: str,
        carrier_code: str,
        order_lines: Iterable[OrderLineLike],
    ) -> ShipmentResult:
        operation = f"shipment creation ({order_id})"
        carrier_name = get_carrier_name(carrier_code)
        body = {
            "order_id": order_id,
            "tracking_number": tracking_number,
            "carrier_code": carrier_code,
            "carrier_name": carrier_name,
            "shipping_date": _now_iso(),
            "order_lines": [
                {"order_line_id": get_order_line_id(line), "quantity": _get_line_quantity(line)}
                for line in order_lines
            ],
        }

        logger.info(f"Creating shipment for order {order_id}...")

        async def send() -> ShipmentResult:
            data = await self._request("POST", "/api/shipments", operation, json=body)
            return self._parse(
                ShipmentResult,
                {
                    **(data if isinstance(data, dict) else {}),
                    "order_id": order_id,
                    "tracking_number": tracking_number,
                    "carrier_code": carrier_code,
                    "carrier_name": carrier_name,
                },
                operation,
            )

        try:
            result = await self._with_retry(send)
        except MiraklError as e:
            logger.error(f"Error creating shipment for order {order_id}: {e}")
            raise ShipmentCreationError(e) from e

        logger.info(f"Shipment created for order {order_id}. Tracking: {tracking_number}")
        return result
