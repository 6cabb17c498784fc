"""
Centralized Test Configuration.
"""

import itertools
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from storefront.app.main import app
from storefront.app.core.config import settings
from storefront.app.core.dependencies import get_carrier_gateway
from storefront.app.db.session import get_db, Base
from storefront.app.models.order import Order, OrderItem
from storefront.app.models.order_enums import OrderStatus
from storefront.app.repositories.order_store import OrderStore
from storefront.app.services.carrier_gateway import CarrierGateway

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeCarrier:
    """
    Stand-in for the carrier API behind httpx.MockTransport.

    Routes are keyed by (method, path). Unrouted calls answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, status_code=200, json_body=None, text=None, error=None):
        self.routes[(method, path)] = (status_code, json_body, text, error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        status_code, json_body, text, error = route
        if error is not None:
            raise error
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=json_body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def last_body(self, method, path):
        return json.loads(self.calls(method, path)[-1].content)


@pytest.fixture
def carrier():
    return FakeCarrier()


@pytest.fixture
async def gateway(carrier):
    async with CarrierGateway.from_settings(
        settings.carrier, transport=httpx.MockTransport(carrier.handler)
    ) as gw:
        yield gw


@pytest.fixture(autouse=True)
async def session_factory():
    """Fresh in-memory database per test function."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(autouse=True)
def apply_overrides(carrier, session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_carrier_gateway():
        async with CarrierGateway.from_settings(
            settings.carrier, transport=httpx.MockTransport(carrier.handler)
        ) as gw:
            yield gw

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_carrier_gateway] = override_get_carrier_gateway
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return OrderStore(db_session)


@pytest.fixture
def reload_order(session_factory):
    """Read an order back through a fresh session."""
    async def _reload(order_id):
        async with session_factory() as session:
            return await session.get(Order, order_id)
    return _reload


_order_numbers = itertools.count(1001)


@pytest.fixture
def make_order(db_session):
    """Persist an order with a shipping snapshot and line items."""
    async def _make(item_quantities=(2,), **fields):
        number = next(_order_numbers)
        values = dict(
            order_number=f"JA-{number}",
            user_id=42,
            status=OrderStatus.PENDING,
            total_amount=Decimal("599.00"),
            customer_name="Thandi Mokoena",
            customer_email="thandi@example.com",
            customer_phone="0821234567",
            shipping_full_name="Thandi Mokoena",
            shipping_address_line1="12 Jan Smuts Ave",
            shipping_address_line2="Parktown",
            shipping_city="Johannesburg",
            shipping_province="Gauteng",
            shipping_postal_code="2193",
            shipping_country="South Africa",
        )
        values.update(fields)
        order = Order(**values)
        order.items = [
            OrderItem(product_id=i + 1, product_name="Rash Guard", quantity=qty, unit_price=Decimal("299.50"))
            for i, qty in enumerate(item_quantities)
        ]
        db_session.add(order)
        await db_session.commit()
        return order
    return _make


def _token(user_id, role):
    """Token as the identity service issues it."""
    claims = {
        "sub": f"user{user_id}",
        "user_id": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {_token(1, 'ADMIN')}"}


@pytest.fixture
def customer_headers():
    """Token for the customer who owns orders from make_order."""
    return {"Authorization": f"Bearer {_token(42, 'CUSTOMER')}"}


@pytest.fixture
def other_customer_headers():
    return {"Authorization": f"Bearer {_token(77, 'CUSTOMER')}"}
