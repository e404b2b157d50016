"""
Root conftest for the pytest test suite.

This file contains the main fixtures that are used across the entire test suite.

This setup uses a manual, async-native approach to database initialization
to ensure that each test runs against a fresh, isolated in-memory database,
which is the most reliable method for an async pytest environment.

Key Fixtures:
- `anyio_backend`: Specifies the asyncio backend for pytest-asyncio.
- `initialize_test_db`: (autouse) Creates a fresh DB schema for each test.
- `app_for_testing`: Provides the FastAPI application instance with its production
  lifespan disabled to allow `initialize_test_db` to manage the test DB.
- `client`: Provides an httpx AsyncClient that calls the app in-process, on
  the test's event loop, so requests share the test database connection.
- `provider`: A ConnectionProvider over the test database.
- `catalog`: Two categories and four products, one without a cost price.
- `make_order`: Factory that creates a completed order with its lines.
"""

import datetime
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
import httpx
from tortoise import Tortoise

from pos_reports.core.database import MODEL_MODULES, ConnectionProvider
from pos_reports.features.catalog.models import Category, Product
from pos_reports.features.customers.models import Customer
from pos_reports.features.orders.models import Order, OrderItem

# Import the app
from pos_reports.main import app as actual_app


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """
    Specifies the asyncio backend for pytest-asyncio.
    """
    return "asyncio"


@pytest_asyncio.fixture(scope="function", autouse=True)
async def initialize_test_db() -> AsyncGenerator[None, None]:
    """
    Initializes the database for each test function.

    This async, autouse fixture creates a fresh in-memory database and schema
    for each test and tears it down afterwards.
    """
    test_db_config = {
        "connections": {"default": "sqlite://:memory:"},
        "apps": {
            "models": {
                "models": MODEL_MODULES,
                "default_connection": "default",
            }
        },
        "use_tz": False,
        "timezone": "UTC",
    }
    await Tortoise.init(config=test_db_config)
    await Tortoise.generate_schemas()

    yield

    await Tortoise.close_connections()


@pytest.fixture(scope="function")
def app_for_testing() -> Generator[FastAPI, Any, None]:
    """
    Provides a FastAPI application instance for testing, with its
    production lifespan manager disabled to allow the test DB fixture
    to manage the database connection.
    """
    original_lifespan = actual_app.router.lifespan_context

    @asynccontextmanager
    async def dummy_lifespan(app: FastAPI):
        yield

    actual_app.router.lifespan_context = dummy_lifespan
    # Nothing cached from a previous test's database
    actual_app.state.database_status_cache.invalidate()

    yield actual_app

    # Restore the original lifespan context after the test
    actual_app.router.lifespan_context = original_lifespan
    actual_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app_for_testing: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Provides an httpx AsyncClient bound to the app through ASGITransport.

    The transport does not run the lifespan, initialize_test_db owns the database.
    """
    transport = httpx.ASGITransport(app=app_for_testing)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture(scope="function")
def provider() -> ConnectionProvider:
    return ConnectionProvider(pool_size=2, acquire_timeout=1, query_timeout=5)


@pytest_asyncio.fixture(scope="function")
async def catalog() -> dict[str, Product]:
    """
    Products keyed by sku:
    - "ESP": Espresso in Beverages, cost 1.00
    - "TEA": Tea in Beverages, cost 0.50
    - "MUF": Muffin in Bakery, cost 2.00
    - "GFT": Gift card without category and without cost price
    """
    beverages = await Category.create(name="Beverages")
    bakery = await Category.create(name="Bakery")
    return {
        "ESP": await Product.create(name="Espresso", sku="ESP", retail_price=3.0, cost_price=1.0, category=beverages),
        "TEA": await Product.create(name="Tea", sku="TEA", retail_price=2.0, cost_price=0.5, category=beverages),
        "MUF": await Product.create(name="Muffin", sku="MUF", retail_price=4.0, cost_price=2.0, category=bakery),
        "GFT": await Product.create(name="Gift Card", sku="GFT", retail_price=25.0, cost_price=None),
    }


@pytest.fixture(scope="function")
def make_order():
    """
    Returns an async factory: await make_order(created_at, [(product, quantity), ...], **fields).

    Line totals are quantity * retail price and the order total is their sum
    unless `total_amount` is given.
    """
    counter = {"n": 0}

    async def _make_order(created_at: datetime.datetime, lines, **fields) -> Order:
        counter["n"] += 1
        subtotal = sum(product.retail_price * qty for product, qty in lines)
        fields.setdefault("subtotal", subtotal)
        fields.setdefault("total_amount", subtotal)
        order = await Order.create(
            order_number=fields.pop("order_number", f"TEST{counter['n']:04d}"),
            created_at=created_at,
            **fields,
        )
        for product, qty in lines:
            await OrderItem.create(
                order=order, product=product, quantity=qty,
                unit_price=product.retail_price, total_price=product.retail_price * qty,
            )
        return order

    return _make_order


@pytest_asyncio.fixture(scope="function")
async def customers() -> list[Customer]:
    return [
        await Customer.create(name="Ada Lovelace", email="ada@example.com"),
        await Customer.create(name="Grace Hopper", email="grace@example.com"),
    ]
