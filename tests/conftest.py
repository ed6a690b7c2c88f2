import os

# Force test configuration before any application module is imported
os.environ.setdefault("TERMINAL_API_KEY", "test-terminal-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("OTLP_ENDPOINT", None)

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from main import app
from services.notification_service.hub import hub
from services.order_service.main import order_app
from services.product_service.main import product_app
from shared.config.database import Base, get_db
from shared.security import limiter
from terminal.client import OrderApiClient

TERMINAL_HEADERS = {"X-Terminal-Key": "test-terminal-key"}


@pytest.fixture(scope="function")
def session_factory(tmp_path):
    """A fresh SQLite database per test."""
    path = tmp_path / "pos.db"
    # Schema through a plain sync engine; no event loop is running during fixture setup
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    yield async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def override_db(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    # Mounted sub-apps keep their own override tables
    for sub_app in (product_app, order_app):
        sub_app.dependency_overrides[get_db] = _get_db
    limiter.reset()
    hub.clear()
    yield session_factory
    for sub_app in (product_app, order_app):
        sub_app.dependency_overrides.clear()
    hub.clear()


@pytest.fixture(scope="function")
def client(override_db):
    """Synchronous client for HTTP and websocket flows."""
    with TestClient(app, headers=TERMINAL_HEADERS) as test_client:
        yield test_client


@pytest_asyncio.fixture(scope="function")
async def api(override_db):
    """Terminal API client wired straight to the ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://pos.test") as http:
        yield OrderApiClient(api_key="test-terminal-key", client=http)


@pytest_asyncio.fixture(scope="function")
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_product(client):
    def _make(name="Latte", price="5.00", quantity="10", **extra):
        payload = {"name": name, "price": price, "quantity": quantity, **extra}
        resp = client.post("/products/", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make
