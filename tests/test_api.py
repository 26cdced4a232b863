import pytest
import httpx

from main import app
from mirakl_sync.db.database import get_db
from mirakl_sync.models.product import Product
from mirakl_sync.services.marketplace_jobs import InventorySyncJob, OrderPullJob
from mirakl_sync.services.scheduler import MarketplaceScheduler


@pytest.fixture
async def api_client(session_factory, mirakl_client):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.mirakl_client = mirakl_client
    app.state.scheduler = MarketplaceScheduler(
        InventorySyncJob(mirakl_client, session_factory),
        OrderPullJob(mirakl_client, session_factory),
        api_configured=mirakl_client.configured,
    )

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def products(session_factory):
    async with session_factory() as session:
        items = [
            Product(sku="LOCAL-1", name="USB-C cable", price=1998, quantity=5, mirakl_sku="BB-1"),
            Product(sku="LOCAL-2", name="HDMI cable", price=999, quantity=3),
            Product(sku="LOCAL-3", name="Charger", price=4999, quantity=0),
        ]
        session.add_all(items)
        await session.commit()
        return [p.id for p in items]


async def pull_orders(api_client, mirakl_stub, orders):
    mirakl_stub.routes.pop(("GET", "/api/orders"), None)
    mirakl_stub.add("GET", "/api/orders", json_body={"orders": orders, "total_count": len(orders)})
    response = await api_client.post("/api/v1/marketplace/pull-orders")
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ----------------------------------------------------------------------
# Product mapping
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_and_unmapped_products(api_client, products):
    response = await api_client.get("/api/v1/product-mapping/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert [p["sku"] for p in data["products"]] == ["LOCAL-1", "LOCAL-2", "LOCAL-3"]

    response = await api_client.get("/api/v1/product-mapping/unmapped")
    assert [p["sku"] for p in response.json()["products"]] == ["LOCAL-2", "LOCAL-3"]


@pytest.mark.asyncio
async def test_update_mapping(api_client, products):
    response = await api_client.put(
        f"/api/v1/product-mapping/{products[1]}",
        json={"mirakl_sku": "BB-2", "bestbuy_category_id": "CAT-7"},
    )
    assert response.status_code == 200
    assert response.json()["mirakl_sku"] == "BB-2"
    assert response.json()["bestbuy_category_id"] == "CAT-7"

    # Blank values clear the mapping
    response = await api_client.put(f"/api/v1/product-mapping/{products[1]}", json={"mirakl_sku": " "})
    assert response.json()["mirakl_sku"] is None
    assert response.json()["bestbuy_category_id"] is None


@pytest.mark.asyncio
async def test_update_mapping_unknown_product(api_client, products):
    response = await api_client.put("/api/v1/product-mapping/9999", json={"mirakl_sku": "BB-9"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bulk_mapping_reports_per_item_errors(api_client, products):
    response = await api_client.post("/api/v1/product-mapping/bulk", json={"products": [
        {"id": products[1], "mirakl_sku": "BB-2"},
        {"id": products[2], "mirakl_sku": "BB-3", "bestbuy_category_id": "CAT-1"},
        {"id": 9999, "mirakl_sku": "BB-X"},
    ]})

    assert response.status_code == 200
    data = response.json()
    assert data["updated"] == 2
    assert data["total"] == 3
    assert data["errors"] == [{"id": 9999, "error": "Product not found"}]

    stats = (await api_client.get("/api/v1/product-mapping/stats")).json()
    assert stats == {"total": 3, "mapped": 3, "unmapped": 0, "synced": 0}


@pytest.mark.asyncio
async def test_bulk_mapping_rejects_empty_input(api_client):
    response = await api_client.post("/api/v1/product-mapping/bulk", json={"products": []})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_clear_mapping(api_client, products, mirakl_stub):
    mirakl_stub.add("POST", "/api/offers", json_body={"import_id": 1})
    await api_client.post("/api/v1/marketplace/sync-offers")

    response = await api_client.delete(f"/api/v1/product-mapping/{products[0]}")
    assert response.status_code == 200
    data = response.json()
    assert data["mirakl_sku"] is None
    assert data["mirakl_offer_id"] is None
    assert data["last_synced_at"] is None

    assert (await api_client.delete("/api/v1/product-mapping/9999")).status_code == 404


# ----------------------------------------------------------------------
# Marketplace
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sync_offers(api_client, products, mirakl_stub):
    mirakl_stub.add("POST", "/api/offers", json_body={"import_id": 77})

    response = await api_client.post("/api/v1/marketplace/sync-offers")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["processed"] == 1

    stats = (await api_client.get("/api/v1/product-mapping/stats")).json()
    assert stats["synced"] == 1


@pytest.mark.asyncio
async def test_sync_offers_failure_returns_500(api_client, products, mirakl_stub):
    mirakl_stub.add("POST", "/api/offers", status_code=401)

    response = await api_client.post("/api/v1/marketplace/sync-offers")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "Mirakl authentication failed: Invalid API key for offer sync"


@pytest.mark.asyncio
async def test_list_orders_with_pagination(api_client, mirakl_stub, order_payload):
    await pull_orders(api_client, mirakl_stub, [
        order_payload("O-1"),
        order_payload("O-2", state="SHIPPING"),
        order_payload("O-3"),
    ])

    response = await api_client.get("/api/v1/marketplace/orders", params={"limit": 2})
    data = response.json()
    assert len(data["orders"]) == 2
    assert data["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}

    response = await api_client.get("/api/v1/marketplace/orders", params={"state": "SHIPPING"})
    data = response.json()
    assert [o["mirakl_order_id"] for o in data["orders"]] == ["O-2"]
    assert data["pagination"]["has_more"] is False


@pytest.mark.asyncio
async def test_get_unknown_order(api_client):
    assert (await api_client.get("/api/v1/marketplace/orders/42")).status_code == 404
    assert (await api_client.post("/api/v1/marketplace/orders/42/accept")).status_code == 404
    response = await api_client.post(
        "/api/v1/marketplace/orders/42/ship", json={"tracking_number": "1Z", "carrier_code": "UPS"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_offer_order_accept_ship_flow(api_client, products, mirakl_stub, order_payload):
    mirakl_stub.add("POST", "/api/offers", json_body={"import_id": 1})
    assert (await api_client.post("/api/v1/marketplace/sync-offers")).status_code == 200

    pulled = await pull_orders(api_client, mirakl_stub, [order_payload("O-1", total_price="19.98", lines=2)])
    assert pulled["imported"] == 1

    orders = (await api_client.get("/api/v1/marketplace/orders")).json()["orders"]
    order_id = orders[0]["id"]
    assert orders[0]["total_price"] == 1998

    # Accept
    mirakl_stub.add("PUT", "/api/orders/O-1/accept", status_code=204)
    response = await api_client.post(f"/api/v1/marketplace/orders/{order_id}/accept")
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["order_state"] == "SHIPPING"
    assert order["accepted_at"] is not None

    accept_body = mirakl_stub.body(mirakl_stub.calls("PUT", "/api/orders/O-1/accept")[0])
    assert [line["order_line_id"] for line in accept_body["order_lines"]] == ["O-1-1", "O-1-2"]

    response = await api_client.post(f"/api/v1/marketplace/orders/{order_id}/accept")
    assert response.status_code == 400
    assert response.json()["detail"] == "Order already accepted"

    # Ship
    mirakl_stub.add("POST", "/api/shipments", json_body={"shipment_id": "SH-1"})
    response = await api_client.post(
        f"/api/v1/marketplace/orders/{order_id}/ship",
        json={"tracking_number": "1Z999AA10123456784", "carrier_code": "UPS"},
    )
    assert response.status_code == 200
    shipment = response.json()["shipment"]
    assert shipment["mirakl_shipment_id"] == "SH-1"
    assert shipment["tracking_number"] == "1Z999AA10123456784"

    response = await api_client.post(
        f"/api/v1/marketplace/orders/{order_id}/ship",
        json={"tracking_number": "1Z999AA10123456784", "carrier_code": "UPS"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Order already shipped"

    detail = (await api_client.get(f"/api/v1/marketplace/orders/{order_id}")).json()
    assert detail["order_state"] == "SHIPPED"
    assert detail["shipped_at"] is not None
    assert [s["carrier_code"] for s in detail["shipments"]] == ["UPS"]

    # Re-pulling the order as SHIPPING keeps it SHIPPED
    await pull_orders(api_client, mirakl_stub, [order_payload("O-1", state="SHIPPING")])
    detail = (await api_client.get(f"/api/v1/marketplace/orders/{order_id}")).json()
    assert detail["order_state"] == "SHIPPED"


@pytest.mark.asyncio
async def test_accept_failure_maps_to_502(api_client, mirakl_stub, order_payload):
    await pull_orders(api_client, mirakl_stub, [order_payload("O-1")])
    order_id = (await api_client.get("/api/v1/marketplace/orders")).json()["orders"][0]["id"]
    mirakl_stub.add("PUT", "/api/orders/O-1/accept", status_code=403)

    response = await api_client.post(f"/api/v1/marketplace/orders/{order_id}/accept")

    assert response.status_code == 502
    assert response.json()["detail"] == "Mirakl access denied: Check shop permissions for order acceptance (O-1)"
    order = (await api_client.get(f"/api/v1/marketplace/orders/{order_id}")).json()
    assert order["accepted_at"] is None


@pytest.mark.asyncio
async def test_ship_requires_tracking_and_carrier(api_client, mirakl_stub, order_payload):
    await pull_orders(api_client, mirakl_stub, [order_payload("O-1")])
    order_id = (await api_client.get("/api/v1/marketplace/orders")).json()["orders"][0]["id"]

    response = await api_client.post(
        f"/api/v1/marketplace/orders/{order_id}/ship", json={"tracking_number": "", "carrier_code": "UPS"}
    )
    assert response.status_code == 422
    assert mirakl_stub.calls("POST", "/api/shipments") == []


@pytest.mark.asyncio
async def test_sync_status(api_client, mirakl_stub, order_payload):
    await pull_orders(api_client, mirakl_stub, [
        order_payload("O-1"),
        order_payload("O-2", state="SHIPPING"),
        order_payload("O-3", state="SHIPPED"),
    ])

    response = await api_client.get("/api/v1/marketplace/sync-status")

    assert response.status_code == 200
    data = response.json()
    assert data["orders"]["last_status"] == "success"
    assert data["orders"]["last_sync"] is not None
    assert data["offers"] == {"last_sync": None, "last_started": None, "last_status": None}
    assert data["pending_orders"] == 2
    assert data["orders_by_state"] == {"WAITING_ACCEPTANCE": 1, "SHIPPING": 1, "SHIPPED": 1}


@pytest.mark.asyncio
async def test_scheduler_and_jobs(api_client, mirakl_stub):
    status = (await api_client.get("/api/v1/marketplace/scheduler")).json()
    assert status == {
        "running": False,
        "inventory_sync_active": False,
        "order_pull_active": False,
        "api_configured": True,
    }

    mirakl_stub.add("GET", "/api/orders", json_body={"orders": [], "total_count": 0})
    response = await api_client.post("/api/v1/marketplace/jobs/orders/run")
    assert response.status_code == 200
    assert response.json()["sync_type"] == "orders"

    response = await api_client.post("/api/v1/marketplace/jobs/reindex/run")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_config(api_client):
    data = (await api_client.get("/api/v1/marketplace/config")).json()
    assert data["configured"] is True
    assert data["has_api_key"] is True
    assert "api_key" not in data
