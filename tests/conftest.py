import json
import pytest
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from mirakl_sync.db.database import Base
from mirakl_sync.core.config import settings
from mirakl_sync.models import *  # noqa: F401,F403  register tables
from mirakl_sync.services.mirakl_service import MiraklClient

TEST_API_URL = "https://marketplace.bestbuy.test"
TEST_API_KEY = "test-api-key"
TEST_SHOP_ID = "2001"


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every requested delay"""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return SleepRecorder()


class MiraklStub:
    """
    Scripted Mirakl API for httpx.MockTransport.

    Responses are queued per (method, path) and served in order; the last
    queued response repeats once the queue is down to one entry.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method: str, path: str, status_code: int = 200, json_body=None, headers=None, content=None):
        self.routes.setdefault((method, path), []).append((status_code, json_body, headers, content))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"No stub for {request.method} {request.url.path}"})

        status_code, json_body, headers, content = queue.pop(0) if len(queue) > 1 else queue[0]
        if content is not None:
            return httpx.Response(status_code, content=content, headers=headers)
        if json_body is None:
            return httpx.Response(status_code, headers=headers)
        return httpx.Response(status_code, json=json_body, headers=headers)

    def calls(self, method: str, path: str):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)


@pytest.fixture
def mirakl_stub():
    return MiraklStub()


@pytest.fixture
async def mirakl_client(mirakl_stub, fake_sleep):
    client = MiraklClient(
        TEST_API_URL,
        TEST_API_KEY,
        TEST_SHOP_ID,
        transport=httpx.MockTransport(mirakl_stub.handler),
        sleep=fake_sleep,
    )
    yield client
    await client.aclose()


def make_order(order_id: str, state: str = "WAITING_ACCEPTANCE", total_price="19.98", lines=1, **extra):
    order = {
        "order_id": order_id,
        "order_state": state,
        "customer": {
            "firstname": "Jane",
            "lastname": "Doe",
            "shipping_address": {"street_1": "1 Main St", "city": "Richfield", "zip_code": "55423"},
        },
        "order_lines": [
            {"order_line_id": f"{order_id}-{i + 1}", "offer_sku": f"SKU-{i + 1}", "quantity": 1, "price": "9.99"}
            for i in range(lines)
        ],
        "total_price": total_price,
        "created_date": "2024-03-01T10:00:00Z",
    }
    order.update(extra)
    return order


def orders_page(orders, total_count=None):
    return {"orders": orders, "total_count": len(orders) if total_count is None else total_count}


@pytest.fixture
def order_payload():
    return make_order


@pytest.fixture
def page_payload():
    return orders_page
