"""
Shared fixtures: an on-disk SQLite database per test, a fake Shopify client
and HTTP clients wired to both through dependency overrides.
"""
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-that-is-at-least-32-chars")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'storesync-test.db')}",
)
os.environ.pop("SHOPIFY_APP_URL", None)

from collections.abc import AsyncGenerator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from storesync.core.config import settings
from storesync.core.database import Base, create_session_factory, get_db_session, get_session_factory
from storesync.core.security import encrypt_token
from storesync.main import app
from storesync.models import Shop
from storesync.routers.shops import get_client_factory
from storesync.services import initial_sync

from fakes import FakeShopifyClient

SHOP_DOMAIN = "test-store.myshopify.com"
APP_URL = "https://app.example.com"


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    File-backed SQLite engine.

    pysqlite's own transaction handling is switched off so SAVEPOINTs work,
    and every transaction starts with BEGIN IMMEDIATE so concurrent sync
    tasks queue on the write lock instead of deadlocking.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'storesync.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def app_config(tmp_path, monkeypatch):
    """Point app URL resolution at a throwaway config file."""
    monkeypatch.setattr(settings, "shopify_app_url", None)
    monkeypatch.setattr(settings, "shopify_app_config_path", str(tmp_path / "shopify.app.toml"))
    return tmp_path / "shopify.app.toml"


@pytest.fixture(autouse=True)
def reset_shop_locks():
    initial_sync._shop_locks.clear()
    yield
    initial_sync._shop_locks.clear()


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def client_factory(fake_shopify: FakeShopifyClient):
    """Client factory handing out the fake for any shop."""
    calls: list[tuple[str, str]] = []

    def factory(access_token_encrypted: str, shop_domain: str) -> FakeShopifyClient:
        calls.append((access_token_encrypted, shop_domain))
        return fake_shopify

    factory.calls = calls
    return factory


@pytest.fixture
async def shop(db_session: AsyncSession) -> Shop:
    """A shop that has authenticated but never synced."""
    shop = Shop(
        domain=SHOP_DOMAIN,
        name="test-store",
        access_token_encrypted=encrypt_token("shpat_test_token"),
        scopes="read_products",
    )
    db_session.add(shop)
    await db_session.commit()
    return shop


@pytest.fixture
def sample_shop_data() -> dict:
    return {
        "domain": SHOP_DOMAIN,
        "accessToken": "shpat_test_token",
        "scopes": "read_products,read_orders",
        "email": "owner@test-store.com",
    }


@pytest.fixture
def override_dependencies(session_factory, client_factory):
    async def _get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _get_db_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_client_factory] = lambda: client_factory
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(override_dependencies) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client running the app on the test's event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def client() -> TestClient:
    """Synchronous client for endpoints that do not touch the database."""
    return TestClient(app)
