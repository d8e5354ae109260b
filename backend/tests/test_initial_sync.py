"""
Tests for the initial sync orchestrator.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storesync.core.exceptions import PersistenceError, ShopSyncError, SyncInProgressError
from storesync.models import (
    CollectionProduct,
    Customer,
    CustomerAddress,
    EntityType,
    Order,
    OrderItem,
    Product,
    ProductImage,
    ProductVariant,
    ShippingAddress,
    Shop,
    SyncLog,
    SyncStatus,
)
from storesync.repositories.upsert import UpsertRepository
from storesync.services.initial_sync import InitialSyncService, _shop_locks, run_initial_sync
from storesync.services.shopify_client import ShopifyAPIError

from conftest import SHOP_DOMAIN
from fakes import (
    FakeShopifyClient,
    collection_node,
    customer_node,
    line_item_node,
    order_node,
    product_node,
)


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


async def latest_log(session_factory, entity_type: EntityType) -> SyncLog:
    async with session_factory() as session:
        result = await session.execute(
            select(SyncLog)
            .where(SyncLog.entity_type == entity_type.value)
            .order_by(SyncLog.id.desc())
            .limit(1)
        )
        return result.scalar_one()


def make_service(client, session_factory, **kwargs) -> InitialSyncService:
    options = {
        "page_size": 3,
        "sync_customers": False,
        "sync_orders": False,
        "isolate_record_errors": ["customers", "orders"],
    }
    options.update(kwargs)
    return InitialSyncService(client, SHOP_DOMAIN, session_factory, **options)


@pytest.fixture
def catalog_client() -> FakeShopifyClient:
    """Two product pages (3 + 1 products, 2 variants each) and one collection."""
    return FakeShopifyClient(
        pages={
            "products": [
                [product_node(1), product_node(2), product_node(3)],
                [product_node(4)],
            ],
            "collections": [[collection_node(30, [1, 2])]],
        }
    )


class TestEndToEnd:
    async def test_syncs_all_pages(self, session_factory, shop, catalog_client):
        result = await make_service(catalog_client, session_factory).sync_all_data()

        assert result.success is True
        assert await count_rows(session_factory, Product) == 4
        assert await count_rows(session_factory, ProductVariant) == 8
        assert await count_rows(session_factory, ProductImage) == 4
        assert catalog_client.requests_for("products") == 2

        products_log = await latest_log(session_factory, EntityType.PRODUCTS)
        assert products_log.status == SyncStatus.COMPLETED.value
        assert products_log.records_processed == products_log.records_total == 4
        assert products_log.completed_at is not None

        shop_log = await latest_log(session_factory, EntityType.SHOP)
        assert shop_log.status == SyncStatus.COMPLETED.value

        outcome = result.outcomes[EntityType.PRODUCTS]
        assert outcome.status is SyncStatus.COMPLETED
        assert outcome.records_processed == 4

    async def test_updates_shop_from_remote_and_stamps_last_sync(
        self, session_factory, shop, catalog_client
    ):
        await make_service(catalog_client, session_factory).sync_all_data()

        async with session_factory() as session:
            synced = await session.get(Shop, shop.id)
            assert synced.name == "Test Store"
            assert synced.shopify_id == 1
            assert synced.currency == "USD"
            assert synced.last_sync_at is not None

    async def test_resync_updates_in_place(self, session_factory, shop, catalog_client):
        await make_service(catalog_client, session_factory).sync_all_data()
        async with session_factory() as session:
            before = (
                await session.execute(select(ProductVariant).where(ProductVariant.shopify_id == 11))
            ).scalar_one()

        catalog_client.pages["products"][0][0] = product_node(1, variants=[(11, "99.99"), (12, "12.50")])
        await make_service(catalog_client, session_factory).sync_all_data()

        assert await count_rows(session_factory, Product) == 4
        assert await count_rows(session_factory, ProductVariant) == 8
        async with session_factory() as session:
            after = (
                await session.execute(select(ProductVariant).where(ProductVariant.shopify_id == 11))
            ).scalar_one()
        assert after.id == before.id
        assert after.price == Decimal("99.99")

    async def test_customers_and_orders_are_off_by_default(
        self, session_factory, shop, catalog_client
    ):
        result = await make_service(catalog_client, session_factory).sync_all_data()

        assert EntityType.CUSTOMERS not in result.outcomes
        assert EntityType.ORDERS not in result.outcomes
        assert catalog_client.requests_for("customers") == 0
        assert catalog_client.requests_for("orders") == 0

    async def test_collection_links_products(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={
                "products": [[product_node(1), product_node(2)]],
                "collections": [[collection_node(30, [1, 2, 404])]],
            }
        )
        service = make_service(client, session_factory)
        await service.sync_all_data()
        # Products and collections race in the first run; the second sees every product
        await service.sync_all_data()

        assert await count_rows(session_factory, CollectionProduct) == 2


class TestFailureIsolation:
    async def test_product_failure_does_not_stop_collections(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={
                "products": [
                    [
                        product_node(1),
                        product_node(2),
                        product_node("abc", variants=[]),
                        product_node(4),
                        product_node(5),
                    ]
                ],
                "collections": [[collection_node(30, [])]],
            }
        )

        result = await make_service(client, session_factory, page_size=5).sync_all_data()

        assert result.success is False
        assert result.failed == [EntityType.PRODUCTS]

        products_log = await latest_log(session_factory, EntityType.PRODUCTS)
        assert products_log.status == SyncStatus.FAILED.value
        assert products_log.records_processed == 2
        assert "non-numeric" in products_log.error_message
        assert products_log.completed_at is not None
        assert await count_rows(session_factory, Product) == 2

        collections_log = await latest_log(session_factory, EntityType.COLLECTIONS)
        assert collections_log.status == SyncStatus.COMPLETED.value

    async def test_remote_error_mid_walk_keeps_committed_pages(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={"products": [[product_node(1), product_node(2)], [product_node(3)]]}
        )
        client.errors[("products", 1)] = ShopifyAPIError("HTTP error: 401", status_code=401)

        result = await make_service(client, session_factory).sync_all_data()

        assert result.outcomes[EntityType.PRODUCTS].status is SyncStatus.FAILED
        products_log = await latest_log(session_factory, EntityType.PRODUCTS)
        assert products_log.error_message == "HTTP error: 401"
        assert products_log.records_processed == 2
        assert await count_rows(session_factory, Product) == 2

    async def test_customer_record_errors_are_skipped(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={
                "customers": [
                    [customer_node(1, address_ids=(101,)), customer_node("bad"), customer_node(3)]
                ],
            }
        )

        result = await make_service(client, session_factory, sync_customers=True).sync_all_data()

        outcome = result.outcomes[EntityType.CUSTOMERS]
        assert outcome.status is SyncStatus.COMPLETED
        assert outcome.records_processed == 2
        assert outcome.records_skipped == 1
        assert await count_rows(session_factory, Customer) == 2
        assert await count_rows(session_factory, CustomerAddress) == 1

        customers_log = await latest_log(session_factory, EntityType.CUSTOMERS)
        assert customers_log.status == SyncStatus.COMPLETED.value
        assert customers_log.records_processed == 2

    async def test_wrong_shaped_records_are_skipped(self, session_factory, shop):
        malformed_customer = {**customer_node(2), "amountSpent": "150.25"}
        malformed_order = {**order_node(71, 1002), "lineItems": "not-a-connection"}
        client = FakeShopifyClient(
            pages={
                "customers": [[customer_node(1), malformed_customer, customer_node(3)]],
                "orders": [[order_node(70, 1001), malformed_order, order_node(72, 1003)]],
            }
        )

        result = await make_service(
            client, session_factory, sync_customers=True, sync_orders=True
        ).sync_all_data()

        customers = result.outcomes[EntityType.CUSTOMERS]
        assert customers.status is SyncStatus.COMPLETED
        assert customers.records_processed == 2
        assert customers.records_skipped == 1
        assert await count_rows(session_factory, Customer) == 2

        orders = result.outcomes[EntityType.ORDERS]
        assert orders.status is SyncStatus.COMPLETED
        assert orders.records_skipped == 1
        assert await count_rows(session_factory, Order) == 2

    async def test_wrong_shaped_product_fails_the_run(self, session_factory, shop):
        malformed = {**product_node(2), "variants": ["not-an-edge"]}
        client = FakeShopifyClient(pages={"products": [[product_node(1), malformed, product_node(3)]]})

        result = await make_service(client, session_factory).sync_all_data()

        outcome = result.outcomes[EntityType.PRODUCTS]
        assert outcome.status is SyncStatus.FAILED
        assert "Malformed products record" in outcome.error
        assert outcome.records_processed == 1

    async def test_isolation_is_configurable(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={"products": [[product_node(1), product_node("abc", variants=[]), product_node(3)]]}
        )

        result = await make_service(
            client, session_factory, isolate_record_errors=["products"]
        ).sync_all_data()

        outcome = result.outcomes[EntityType.PRODUCTS]
        assert outcome.status is SyncStatus.COMPLETED
        assert outcome.records_skipped == 1
        assert await count_rows(session_factory, Product) == 2

    async def test_failed_record_leaves_no_partial_rows(self, session_factory, shop, monkeypatch):
        upsert = UpsertRepository.upsert

        async def failing_upsert(self, model, key, create_fields, update_fields):
            # Product 2 and its variants are already written when its image fails
            if model is ProductImage and key == {"shopify_id": 200}:
                raise PersistenceError("disk full")
            return await upsert(self, model, key, create_fields, update_fields)

        monkeypatch.setattr(UpsertRepository, "upsert", failing_upsert)
        client = FakeShopifyClient(pages={"products": [[product_node(1), product_node(2)]]})

        result = await make_service(
            client, session_factory, isolate_record_errors=["products"]
        ).sync_all_data()

        assert result.outcomes[EntityType.PRODUCTS].records_skipped == 1
        assert await count_rows(session_factory, Product) == 1
        assert await count_rows(session_factory, ProductVariant) == 2
        assert await count_rows(session_factory, ProductImage) == 1

    async def test_shop_failure_is_fatal(self, session_factory, shop, catalog_client):
        catalog_client.shop_error = ShopifyAPIError("HTTP error: 401", status_code=401)

        with pytest.raises(ShopSyncError):
            await make_service(catalog_client, session_factory).sync_all_data()

        assert catalog_client.requests_for("products") == 0
        shop_log = await latest_log(session_factory, EntityType.SHOP)
        assert shop_log.status == SyncStatus.FAILED.value
        assert shop_log.error_message == "HTTP error: 401"
        async with session_factory() as session:
            assert (await session.get(Shop, shop.id)).last_sync_at is None


class TestOrders:
    async def test_orders_link_customers_and_variants(self, session_factory, shop):
        client = FakeShopifyClient(
            pages={
                "products": [[product_node(1)]],
                "customers": [[customer_node(5)]],
                "orders": [
                    [
                        order_node(
                            900,
                            1001,
                            customer_id=5,
                            line_items=[
                                line_item_node(71, variant_id=11, product_id=1, quantity=2),
                                line_item_node(72, variant_id=999),
                            ],
                        )
                    ]
                ],
            }
        )
        service = make_service(client, session_factory, sync_customers=True, sync_orders=True)

        result = await service.sync_all_data()
        await service.sync_all_data()

        assert result.outcomes[EntityType.ORDERS].records_processed == 1
        assert await count_rows(session_factory, Order) == 1
        assert await count_rows(session_factory, OrderItem) == 2
        assert await count_rows(session_factory, ShippingAddress) == 1

        async with session_factory() as session:
            order = (await session.execute(select(Order))).scalar_one()
            customer = (await session.execute(select(Customer))).scalar_one()
            items = {
                item.shopify_id: item
                for item in (await session.execute(select(OrderItem))).scalars()
            }
        assert order.order_number == "1001"
        assert order.customer_id == customer.id
        assert items[71].product_variant_id is not None
        assert items[71].quantity == 2
        # Variant 999 was never synced
        assert items[72].product_variant_id is None

    async def test_orders_run_after_customers(self, session_factory, shop):
        client = FakeShopifyClient(pages={"customers": [[customer_node(5)]], "orders": [[]]})

        await make_service(
            client, session_factory, sync_customers=True, sync_orders=True
        ).sync_all_data()

        roots = [root for root, _ in client.requests]
        assert roots.index("orders") > roots.index("customers")


class TestConcurrencyGuard:
    async def test_rejects_run_while_lock_held(self, session_factory, shop, catalog_client):
        async with _shop_locks[SHOP_DOMAIN]:
            with pytest.raises(SyncInProgressError):
                await make_service(catalog_client, session_factory).sync_all_data()

        assert catalog_client.requests == []

    async def test_lock_is_dropped_after_run(self, session_factory, shop, catalog_client):
        await make_service(catalog_client, session_factory).sync_all_data()

        assert SHOP_DOMAIN not in _shop_locks

        catalog_client.shop_error = ShopifyAPIError("HTTP error: 401", status_code=401)
        with pytest.raises(ShopSyncError):
            await make_service(catalog_client, session_factory).sync_all_data()

        assert SHOP_DOMAIN not in _shop_locks

    async def test_rejects_run_with_recent_started_log(self, session_factory, shop, catalog_client):
        async with session_factory() as session:
            session.add(
                SyncLog(
                    shop_id=shop.id,
                    entity_type=EntityType.PRODUCTS.value,
                    status=SyncStatus.STARTED.value,
                    records_processed=0,
                    started_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()

        with pytest.raises(SyncInProgressError):
            await make_service(catalog_client, session_factory).sync_all_data()

    async def test_stale_started_log_does_not_block(self, session_factory, shop, catalog_client):
        async with session_factory() as session:
            session.add(
                SyncLog(
                    shop_id=shop.id,
                    entity_type=EntityType.PRODUCTS.value,
                    status=SyncStatus.STARTED.value,
                    records_processed=0,
                    started_at=datetime.now(timezone.utc) - timedelta(days=1),
                )
            )
            await session.commit()

        result = await make_service(catalog_client, session_factory).sync_all_data()

        assert result.success is True


class TestRunInitialSync:
    async def test_builds_client_from_stored_token(self, session_factory, shop, catalog_client):
        calls = []

        def factory(token, domain):
            calls.append((token, domain))
            return catalog_client

        result = await run_initial_sync(SHOP_DOMAIN, session_factory, factory)

        assert result is not None and result.success
        assert calls == [(shop.access_token_encrypted, SHOP_DOMAIN)]

    async def test_unknown_shop_is_logged_not_raised(self, session_factory, catalog_client):
        result = await run_initial_sync("missing.myshopify.com", session_factory, lambda *_: catalog_client)

        assert result is None
        assert catalog_client.requests == []

    async def test_shop_failure_is_logged_not_raised(self, session_factory, shop, catalog_client):
        catalog_client.shop_error = ShopifyAPIError("boom")

        assert await run_initial_sync(SHOP_DOMAIN, session_factory, lambda *_: catalog_client) is None
