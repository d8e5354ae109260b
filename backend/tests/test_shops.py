"""
Tests for shop bootstrap, sync and webhook URL endpoints.
"""
import httpx
from sqlalchemy import func, select

from storesync.core.config import settings
from storesync.main import app
from storesync.models import EntityType, Product, Shop
from storesync.repositories.sync_log import SyncLogRepository
from storesync.routers.shops import get_client_factory
from storesync.services import initial_sync
from storesync.services.shopify_client import ShopifyAPIError

from conftest import APP_URL, SHOP_DOMAIN
from fakes import product_node, webhook_node


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestBootstrapShopSession:
    async def test_creates_shop_and_runs_initial_sync(
        self, async_client: httpx.AsyncClient, session_factory, fake_shopify, sample_shop_data, monkeypatch
    ):
        monkeypatch.setattr(settings, "shopify_app_url", APP_URL)
        fake_shopify.pages["products"] = [[product_node(1), product_node(2)]]

        response = await async_client.post("/api/shops", json=sample_shop_data)

        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert data["initialSyncScheduled"] is True
        assert data["shop"]["domain"] == SHOP_DOMAIN
        assert data["webhookError"] is None
        assert {t["status"] for t in data["webhooks"]["topics"]} == {"created"}
        assert len(fake_shopify.created) == 4

        # ASGITransport runs background tasks before returning
        assert await count(session_factory, Product) == 2
        async with session_factory() as session:
            shop = await session.scalar(select(Shop).where(Shop.domain == SHOP_DOMAIN))
        assert shop.name == "Test Store"
        assert shop.last_sync_at is not None

    async def test_second_session_does_not_resync(
        self, async_client: httpx.AsyncClient, fake_shopify, sample_shop_data, monkeypatch
    ):
        monkeypatch.setattr(settings, "shopify_app_url", APP_URL)
        await async_client.post("/api/shops", json=sample_shop_data)
        requests_after_first = len(fake_shopify.requests)

        response = await async_client.post("/api/shops", json=sample_shop_data)

        data = response.json()
        assert data["created"] is False
        assert data["initialSyncScheduled"] is False
        assert {t["status"] for t in data["webhooks"]["topics"]} == {"exists"}
        assert len(fake_shopify.requests) == requests_after_first

    async def test_token_is_stored_encrypted(
        self, async_client: httpx.AsyncClient, session_factory, client_factory, sample_shop_data
    ):
        await async_client.post("/api/shops", json=sample_shop_data)

        async with session_factory() as session:
            shop = await session.scalar(select(Shop).where(Shop.domain == SHOP_DOMAIN))
        assert shop.access_token_encrypted != "shpat_test_token"
        assert client_factory.calls[0] == (shop.access_token_encrypted, SHOP_DOMAIN)

    async def test_missing_app_url_is_reported_not_raised(
        self, async_client: httpx.AsyncClient, fake_shopify, sample_shop_data
    ):
        response = await async_client.post("/api/shops", json=sample_shop_data)

        assert response.status_code == 200
        data = response.json()
        assert data["webhooks"] is None
        assert "SHOPIFY_APP_URL" in data["webhookError"]
        assert fake_shopify.created == []

    async def test_rejects_invalid_domain(self, async_client: httpx.AsyncClient, sample_shop_data):
        sample_shop_data["domain"] = "Not A Domain"

        response = await async_client.post("/api/shops", json=sample_shop_data)

        assert response.status_code == 422


class TestGetShop:
    async def test_get_shop(self, async_client: httpx.AsyncClient, shop: Shop):
        response = await async_client.get(f"/api/shops/{SHOP_DOMAIN}")

        assert response.status_code == 200
        data = response.json()
        assert data["domain"] == SHOP_DOMAIN
        assert data["lastSyncAt"] is None
        assert "accessToken" not in data
        assert "access_token_encrypted" not in data

    async def test_get_unknown_shop(self, async_client: httpx.AsyncClient):
        response = await async_client.get("/api/shops/missing.myshopify.com")

        assert response.status_code == 404


class TestTriggerSync:
    async def test_unknown_shop(self, async_client: httpx.AsyncClient):
        response = await async_client.post("/api/shops/missing.myshopify.com/sync")

        assert response.status_code == 404

    async def test_conflict_while_running(self, async_client: httpx.AsyncClient, shop: Shop):
        lock = initial_sync._shop_locks[SHOP_DOMAIN]
        await lock.acquire()
        try:
            response = await async_client.post(f"/api/shops/{SHOP_DOMAIN}/sync")
        finally:
            lock.release()

        assert response.status_code == 409

    async def test_conflict_with_recent_unfinished_run(
        self, async_client: httpx.AsyncClient, session_factory, shop: Shop
    ):
        async with session_factory() as session:
            await SyncLogRepository(session).start(shop.id, EntityType.PRODUCTS)
            await session.commit()

        response = await async_client.post(f"/api/shops/{SHOP_DOMAIN}/sync")

        assert response.status_code == 409

    async def test_accepts_and_runs(
        self, async_client: httpx.AsyncClient, session_factory, fake_shopify, shop: Shop
    ):
        fake_shopify.pages["products"] = [[product_node(1)]]

        response = await async_client.post(f"/api/shops/{SHOP_DOMAIN}/sync")

        assert response.status_code == 202
        data = response.json()
        assert data["syncStarted"] is True
        assert data["shopDomain"] == SHOP_DOMAIN
        assert await count(session_factory, Product) == 1


class TestSyncLogs:
    async def test_reports_latest_attempt_per_entity(
        self, async_client: httpx.AsyncClient, fake_shopify, shop: Shop
    ):
        fake_shopify.pages["products"] = [[product_node(1)], [product_node(2)]]
        fake_shopify.errors[("products", 1)] = ShopifyAPIError("Throttled on page two", status_code=429)
        await async_client.post(f"/api/shops/{SHOP_DOMAIN}/sync")

        response = await async_client.get(f"/api/shops/{SHOP_DOMAIN}/sync-logs")

        assert response.status_code == 200
        data = response.json()
        assert data["syncRunning"] is False
        logs = {log["entityType"]: log for log in data["logs"]}
        assert logs["products"]["status"] == "failed"
        assert logs["products"]["errorMessage"] == "Throttled on page two"
        assert logs["products"]["recordsProcessed"] == 1
        assert logs["collections"]["status"] == "completed"

    async def test_unknown_shop(self, async_client: httpx.AsyncClient):
        response = await async_client.get("/api/shops/missing.myshopify.com/sync-logs")

        assert response.status_code == 404


class TestWebhookUrl:
    async def test_get_when_not_configured(self, async_client: httpx.AsyncClient):
        response = await async_client.get("/api/webhooks/url")

        assert response.status_code == 503

    async def test_get_from_config_file(self, async_client: httpx.AsyncClient, app_config):
        app_config.write_text(f'application_url = "{APP_URL}/"\n')

        response = await async_client.get("/api/webhooks/url")

        assert response.json() == {"url": APP_URL}

    async def test_rejects_non_https_url(self, async_client: httpx.AsyncClient):
        response = await async_client.post("/api/webhooks/url", json={"url": "http://insecure.example.com"})

        assert response.status_code == 422
        assert settings.shopify_app_url is None

    async def test_repoints_every_shop(
        self, async_client: httpx.AsyncClient, fake_shopify, shop: Shop, app_config
    ):
        fake_shopify.subscriptions = [
            webhook_node(1, "PRODUCTS_CREATE", "https://old-tunnel.example.com/webhooks/products/create"),
        ]
        new_url = "https://new-tunnel.example.com"

        response = await async_client.post("/api/webhooks/url", json={"url": f"{new_url}/"})

        assert response.status_code == 200
        data = response.json()
        assert data["url"] == new_url
        assert len(data["shops"]) == 1
        shop_update = data["shops"][0]
        assert shop_update["shopDomain"] == SHOP_DOMAIN
        assert shop_update["success"] is True
        assert shop_update["result"]["deleted"] == ["gid://shopify/WebhookSubscription/1"]
        assert all(url.startswith(new_url) for _, url in fake_shopify.created)

        assert settings.shopify_app_url == new_url
        assert f'application_url = "{new_url}"' in app_config.read_text()

    async def test_reports_shop_failures(
        self, async_client: httpx.AsyncClient, session_factory, shop: Shop
    ):
        async with session_factory() as session:
            session.add(
                Shop(
                    domain="broken.myshopify.com",
                    name="broken",
                    access_token_encrypted="not-a-valid-token",
                )
            )
            await session.commit()

        def factory(access_token_encrypted: str, shop_domain: str):
            raise ValueError("Failed to decrypt token")

        app.dependency_overrides[get_client_factory] = lambda: factory

        response = await async_client.post("/api/webhooks/url", json={"url": "https://new.example.com"})

        assert response.status_code == 200
        shops = response.json()["shops"]
        assert [s["success"] for s in shops] == [False, False]
        assert all(s["error"] == "Failed to decrypt token" for s in shops)
