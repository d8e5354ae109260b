"""
Pure mapping from Shopify GraphQL nodes to local row field sets.

Every mapper returns the unique key, the fields to write on update and the
fields to write on create, for the parent row and each nested child. Values
that depend on the sync run (shop id, parent ids, resolved references) are
filled in by the sync strategies, so the same node always maps the same way.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from storesync.core.exceptions import MappingError

# Largest value a BIGINT column holds
_MAX_BIGINT = 2**63 - 1


@dataclass(frozen=True)
class MappedRow:
    key: dict[str, Any]
    update_fields: dict[str, Any]
    create_fields: dict[str, Any]
    # Foreign keys still expressed as Shopify ids, resolved at write time
    references: dict[str, Optional[int]] = field(default_factory=dict)


@dataclass(frozen=True)
class MappedEntity:
    row: MappedRow
    children: dict[str, list[MappedRow]] = field(default_factory=dict)


# ============================================
# FIELD PARSERS
# ============================================

def parse_shopify_id(gid: Any) -> int:
    """
    Reduce a GID such as "gid://shopify/Product/987654321" to 987654321.

    The numeric tail is the equality key for every later lookup, so anything
    that is not an exact non-negative 64-bit integer is rejected.
    """
    if isinstance(gid, int) and not isinstance(gid, bool):
        candidate = str(gid)
    elif isinstance(gid, str) and gid:
        # MailingAddress GIDs carry a "?model_name=..." suffix
        candidate = gid.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    else:
        raise MappingError(f"Missing or invalid Shopify id: {gid!r}")

    if not (candidate.isascii() and candidate.isdigit()):
        raise MappingError(f"Shopify id has a non-numeric suffix: {gid!r}")

    value = int(candidate)
    if value > _MAX_BIGINT:
        raise MappingError(f"Shopify id does not fit in 64 bits: {gid!r}")
    return value


def parse_optional_id(obj: Optional[dict[str, Any]]) -> Optional[int]:
    """Id of an optional nested reference such as {"id": "gid://..."} or null."""
    if not obj or obj.get("id") is None:
        return None
    return parse_shopify_id(obj["id"])


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a money string; invalid or missing values become None, never zero."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def parse_float(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse Shopify's ISO-8601 timestamps ("2024-01-01T00:00:00Z")."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _lower(value: Any) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None


def _money_amount(money_set: Optional[dict[str, Any]]) -> Optional[Decimal]:
    shop_money = (money_set or {}).get("shopMoney") or {}
    return parse_decimal(shop_money.get("amount"))


def _edges(node: dict[str, Any], name: str) -> list[dict[str, Any]]:
    connection = node.get(name) or {}
    return [edge["node"] for edge in connection.get("edges") or [] if edge.get("node")]


def _require(node: dict[str, Any], name: str) -> Any:
    value = node.get(name)
    if value is None or value == "":
        raise MappingError(f"Required field '{name}' is missing", remote_id=node.get("id"))
    return value


def _timestamps(node: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """(update, create) timestamp fields; missing values fall back to DB defaults."""
    created_at = parse_datetime(node.get("createdAt"))
    updated_at = parse_datetime(node.get("updatedAt"))
    update = {"updated_at": updated_at} if updated_at else {}
    create = dict(update)
    if created_at:
        create["created_at"] = created_at
    return update, create


def _row(
    key: dict[str, Any],
    fields: dict[str, Any],
    node: Optional[dict[str, Any]] = None,
    references: Optional[dict[str, Optional[int]]] = None,
) -> MappedRow:
    update_ts, create_ts = _timestamps(node) if node else ({}, {})
    return MappedRow(
        key=key,
        update_fields={**fields, **update_ts},
        create_fields={**fields, **create_ts},
        references=references or {},
    )


# ============================================
# ENTITY MAPPERS
# ============================================

def map_shop(node: dict[str, Any]) -> dict[str, Any]:
    """Fields read from the `shop` query."""
    return {
        "shopify_id": parse_shopify_id(node.get("id")),
        "name": _require(node, "name"),
        "email": node.get("email"),
        "currency": node.get("currencyCode"),
    }


def map_product(node: dict[str, Any]) -> MappedEntity:
    product_id = parse_shopify_id(node.get("id"))

    variants = [
        _row(
            {"shopify_id": parse_shopify_id(variant.get("id"))},
            {
                "title": variant.get("title"),
                "price": parse_decimal(variant.get("price")),
                "sku": variant.get("sku") or None,
                "inventory_quantity": parse_int(variant.get("inventoryQuantity")) or 0,
            },
            variant,
        )
        for variant in _edges(node, "variants")
    ]
    images = [
        _row(
            {"shopify_id": parse_shopify_id(image.get("id"))},
            {
                "alt": image.get("altText"),
                "width": parse_int(image.get("width")),
                "height": parse_int(image.get("height")),
                "src": image.get("url"),
            },
        )
        for image in _edges(node, "images")
    ]

    return MappedEntity(
        row=_row(
            {"shopify_id": product_id},
            {
                "title": _require(node, "title"),
                "handle": node.get("handle"),
                "vendor": node.get("vendor"),
                "status": _lower(node.get("status")),
            },
            node,
        ),
        children={"variants": variants, "images": images},
    )


def _postal_fields(address: dict[str, Any]) -> dict[str, Any]:
    return {
        "first_name": address.get("firstName"),
        "last_name": address.get("lastName"),
        "company": address.get("company"),
        "address1": address.get("address1"),
        "address2": address.get("address2"),
        "city": address.get("city"),
        "province": address.get("province"),
        "province_code": address.get("provinceCode"),
        "country": address.get("country"),
        "country_code": address.get("countryCodeV2"),
        "zip": address.get("zip"),
        "phone": address.get("phone"),
        "name": address.get("name"),
    }


def map_customer(node: dict[str, Any]) -> MappedEntity:
    customer_id = parse_shopify_id(node.get("id"))
    default_address_id = parse_optional_id(node.get("defaultAddress"))

    # amountSpent/numberOfOrders are absent under some access scopes
    amount_spent = node.get("amountSpent")
    addresses = []
    for address in node.get("addresses") or []:
        address_id = parse_shopify_id(address.get("id"))
        addresses.append(
            _row(
                {"shopify_id": address_id},
                {
                    **_postal_fields(address),
                    "is_default": address_id == default_address_id,
                },
            )
        )

    return MappedEntity(
        row=_row(
            {"shopify_id": customer_id},
            {
                "first_name": node.get("firstName"),
                "last_name": node.get("lastName"),
                "email": node.get("email"),
                "phone": node.get("phone"),
                "total_spent": parse_decimal(amount_spent.get("amount")) if amount_spent else None,
                "orders_count": parse_int(node.get("numberOfOrders")),
            },
            node,
        ),
        children={"addresses": addresses},
    )


def _order_address(address: Optional[dict[str, Any]]) -> list[MappedRow]:
    if not address:
        return []
    return [
        _row(
            {},
            {
                **_postal_fields(address),
                "latitude": parse_float(address.get("latitude")),
                "longitude": parse_float(address.get("longitude")),
            },
        )
    ]


def map_order(node: dict[str, Any]) -> MappedEntity:
    order_id = parse_shopify_id(node.get("id"))
    order_number = str(_require(node, "name")).lstrip("#").strip()
    if not order_number:
        raise MappingError("Order name has no number", remote_id=node.get("id"))

    items = []
    for line_item in _edges(node, "lineItems"):
        fields = {
            "quantity": parse_int(line_item.get("quantity")) or 0,
            "price": _money_amount(line_item.get("originalUnitPriceSet")) or Decimal("0"),
        }
        items.append(
            MappedRow(
                key={"shopify_id": parse_shopify_id(line_item["id"])} if line_item.get("id") else {},
                update_fields=fields,
                create_fields=fields,
                references={
                    "product_variant_id": parse_optional_id(line_item.get("variant")),
                    "product_id": parse_optional_id(line_item.get("product")),
                },
            )
        )

    return MappedEntity(
        row=_row(
            {"shopify_id": order_id},
            {
                "order_number": order_number,
                "email": node.get("email"),
                "financial_status": _lower(node.get("displayFinancialStatus")),
                "fulfillment_status": _lower(node.get("displayFulfillmentStatus")),
                "total_price": _money_amount(node.get("totalPriceSet")),
                "currency": node.get("currencyCode"),
            },
            node,
            references={"customer_id": parse_optional_id(node.get("customer"))},
        ),
        children={
            "items": items,
            "shipping_address": _order_address(node.get("shippingAddress")),
            "billing_address": _order_address(node.get("billingAddress")),
        },
    )


def map_collection(node: dict[str, Any]) -> MappedEntity:
    collection_id = parse_shopify_id(node.get("id"))
    products = [
        MappedRow(key={"shopify_id": parse_shopify_id(product.get("id"))}, update_fields={}, create_fields={})
        for product in _edges(node, "products")
    ]
    return MappedEntity(
        row=_row(
            {"shopify_id": collection_id},
            {
                "handle": node.get("handle"),
                "title": _require(node, "title"),
            },
        ),
        children={"products": products},
    )
