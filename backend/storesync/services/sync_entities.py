"""
Per-entity-type sync strategies.

Each paginated entity type pairs its GraphQL query, its mapper and the
repository writes for its rows. The orchestrator picks strategies out of
ENTITY_SYNCS instead of branching on entity type names.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from storesync.core.exceptions import MappingError
from storesync.models import (
    BillingAddress,
    Collection,
    Customer,
    CustomerAddress,
    EntityType,
    Order,
    OrderItem,
    Product,
    ProductImage,
    ProductVariant,
    ShippingAddress,
)
from storesync.repositories.upsert import UpsertRepository
from storesync.services.mappers import (
    MappedEntity,
    map_collection,
    map_customer,
    map_order,
    map_product,
)
from storesync.services.shopify_queries import (
    COLLECTIONS_QUERY,
    CUSTOMERS_QUERY,
    ORDERS_QUERY,
    PRODUCTS_QUERY,
    EntityQuery,
)


@dataclass(frozen=True)
class SyncContext:
    """Run-scoped values shared by every step once the shop is known."""

    shop_id: int
    shop_domain: str
    started_at: datetime
    base_url: Optional[str] = None


class EntitySync(ABC):
    """Query, mapping and persistence for one paginated entity type."""

    entity_type: EntityType
    query: EntityQuery

    @abstractmethod
    def map(self, node: dict[str, Any]) -> MappedEntity:
        ...

    @abstractmethod
    async def write(
        self,
        repo: UpsertRepository,
        ctx: SyncContext,
        entity: MappedEntity,
    ) -> None:
        ...

    async def sync_node(
        self,
        repo: UpsertRepository,
        ctx: SyncContext,
        node: dict[str, Any],
    ) -> None:
        await self.write(repo, ctx, self.map_node(node))

    def map_node(self, node: Any) -> MappedEntity:
        """Map one node; a node of the wrong shape raises MappingError."""
        remote_id = node.get("id") if isinstance(node, dict) else None
        try:
            return self.map(node)
        except (AttributeError, TypeError, KeyError) as e:
            raise MappingError(f"Malformed {self.entity_type.value} record: {e}", remote_id=remote_id) from e


class ProductSync(EntitySync):
    entity_type = EntityType.PRODUCTS
    query = PRODUCTS_QUERY

    def map(self, node: dict[str, Any]) -> MappedEntity:
        return map_product(node)

    async def write(self, repo: UpsertRepository, ctx: SyncContext, entity: MappedEntity) -> None:
        row = entity.row
        product = await repo.upsert(
            Product,
            row.key,
            {**row.create_fields, "shop_id": ctx.shop_id},
            row.update_fields,
        )

        for variant in entity.children["variants"]:
            await repo.upsert(
                ProductVariant,
                variant.key,
                {**variant.create_fields, "product_id": product.id},
                variant.update_fields,
            )
        for image in entity.children["images"]:
            await repo.upsert(
                ProductImage,
                image.key,
                {**image.create_fields, "product_id": product.id},
                image.update_fields,
            )


class CustomerSync(EntitySync):
    entity_type = EntityType.CUSTOMERS
    query = CUSTOMERS_QUERY

    def map(self, node: dict[str, Any]) -> MappedEntity:
        return map_customer(node)

    async def write(self, repo: UpsertRepository, ctx: SyncContext, entity: MappedEntity) -> None:
        row = entity.row
        customer = await repo.upsert(
            Customer,
            row.key,
            {**row.create_fields, "shop_id": ctx.shop_id},
            row.update_fields,
        )

        for address in entity.children["addresses"]:
            await repo.upsert(
                CustomerAddress,
                address.key,
                {**address.create_fields, "customer_id": customer.id},
                address.update_fields,
            )


class OrderSync(EntitySync):
    entity_type = EntityType.ORDERS
    query = ORDERS_QUERY

    def map(self, node: dict[str, Any]) -> MappedEntity:
        return map_order(node)

    async def write(self, repo: UpsertRepository, ctx: SyncContext, entity: MappedEntity) -> None:
        row = entity.row
        # Customers not synced (or not readable) leave the order unlinked
        customer_id = await repo.local_id(Customer, row.references.get("customer_id"))
        order = await repo.upsert(
            Order,
            row.key,
            {**row.create_fields, "shop_id": ctx.shop_id, "customer_id": customer_id},
            {**row.update_fields, "customer_id": customer_id},
        )

        for item in entity.children["items"]:
            links = {
                "product_variant_id": await repo.local_id(
                    ProductVariant, item.references.get("product_variant_id")
                ),
                "product_id": await repo.local_id(Product, item.references.get("product_id")),
            }
            create_fields = {**item.create_fields, **links, "order_id": order.id}
            if item.key:
                await repo.upsert(OrderItem, item.key, create_fields, {**item.update_fields, **links})
            else:
                # No line item id to match on: every run inserts a new row
                await repo.create(OrderItem, create_fields)

        for model, name in ((ShippingAddress, "shipping_address"), (BillingAddress, "billing_address")):
            for address in entity.children[name]:
                await repo.upsert(
                    model,
                    {"order_id": order.id},
                    address.create_fields,
                    address.update_fields,
                )


class CollectionSync(EntitySync):
    entity_type = EntityType.COLLECTIONS
    query = COLLECTIONS_QUERY

    def map(self, node: dict[str, Any]) -> MappedEntity:
        return map_collection(node)

    async def write(self, repo: UpsertRepository, ctx: SyncContext, entity: MappedEntity) -> None:
        row = entity.row
        collection = await repo.upsert(
            Collection,
            row.key,
            {**row.create_fields, "shop_id": ctx.shop_id},
            row.update_fields,
        )

        # Products that are not in the local store yet are left out
        product_ids = []
        for product in entity.children["products"]:
            product_id = await repo.local_id(Product, product.key["shopify_id"])
            if product_id is not None:
                product_ids.append(product_id)
        await repo.replace_collection_products(collection.id, product_ids)


ENTITY_SYNCS: dict[EntityType, EntitySync] = {
    strategy.entity_type: strategy
    for strategy in (ProductSync(), CustomerSync(), OrderSync(), CollectionSync())
}
