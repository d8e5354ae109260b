"""
Typed builders for the paginated Shopify GraphQL queries used by the sync.

Each entity type declares its selection once as an EntityQuery; the
pagination wrapper (first/after variables, pageInfo, edges/node) is
generated so every query pages the same way.
"""
from dataclasses import dataclass
from typing import Any, Optional


def fields(*names: str) -> str:
    """Join scalar fields and nested selections into one selection set."""
    return "\n".join(names)


def nested(name: str, *selection: str) -> str:
    """A nested object selection, e.g. nested("variant", "id")."""
    return f"{name} {{\n{fields(*selection)}\n}}"


def connection(name: str, first: int, *selection: str) -> str:
    """A nested connection read in a single page, e.g. a product's variants."""
    return (
        f"{name}(first: {first}) {{\n"
        f"edges {{\nnode {{\n{fields(*selection)}\n}}\n}}\n"
        f"}}"
    )


def money(name: str) -> str:
    """A MoneyBag field, read in shop currency."""
    return nested(name, nested("shopMoney", "amount", "currencyCode"))


@dataclass(frozen=True)
class EntityQuery:
    """A top-level paginated connection and the node selection to read."""

    operation: str
    root: str
    node_selection: str

    def build(self) -> str:
        return (
            f"query {self.operation}($first: Int!, $after: String) {{\n"
            f"{self.root}(first: $first, after: $after) {{\n"
            f"pageInfo {{\nhasNextPage\nendCursor\n}}\n"
            f"edges {{\nnode {{\n{self.node_selection}\n}}\n}}\n"
            f"}}\n"
            f"}}"
        )

    def variables(self, first: int, after: Optional[str] = None) -> dict[str, Any]:
        return {"first": first, "after": after}


_POSTAL_FIELDS = (
    "firstName",
    "lastName",
    "company",
    "address1",
    "address2",
    "city",
    "province",
    "provinceCode",
    "country",
    "zip",
    "phone",
    "name",
)


PRODUCTS_QUERY = EntityQuery(
    operation="GetProducts",
    root="products",
    node_selection=fields(
        "id",
        "title",
        "handle",
        "vendor",
        "status",
        "createdAt",
        "updatedAt",
        connection(
            "variants",
            100,
            "id",
            "title",
            "price",
            "sku",
            "inventoryQuantity",
            "createdAt",
            "updatedAt",
        ),
        connection("images", 10, "id", "altText", "width", "height", "url"),
    ),
)

CUSTOMERS_QUERY = EntityQuery(
    operation="GetCustomers",
    root="customers",
    node_selection=fields(
        "id",
        "firstName",
        "lastName",
        "email",
        "phone",
        "numberOfOrders",
        nested("amountSpent", "amount", "currencyCode"),
        "createdAt",
        "updatedAt",
        nested("defaultAddress", "id"),
        nested("addresses", "id", "countryCodeV2", *_POSTAL_FIELDS),
    ),
)

ORDERS_QUERY = EntityQuery(
    operation="GetOrders",
    root="orders",
    node_selection=fields(
        "id",
        "name",
        "email",
        "currencyCode",
        "displayFinancialStatus",
        "displayFulfillmentStatus",
        money("totalPriceSet"),
        "createdAt",
        "updatedAt",
        nested("customer", "id"),
        connection(
            "lineItems",
            100,
            "id",
            "quantity",
            money("originalUnitPriceSet"),
            nested("variant", "id"),
            nested("product", "id"),
        ),
        nested("shippingAddress", "countryCodeV2", "latitude", "longitude", *_POSTAL_FIELDS),
        nested("billingAddress", "countryCodeV2", "latitude", "longitude", *_POSTAL_FIELDS),
    ),
)

COLLECTIONS_QUERY = EntityQuery(
    operation="GetCollections",
    root="collections",
    node_selection=fields(
        "id",
        "handle",
        "title",
        connection("products", 100, "id"),
    ),
)
