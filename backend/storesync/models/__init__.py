"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from storesync.models.collection import Collection, CollectionProduct
from storesync.models.customer import Customer, CustomerAddress
from storesync.models.order import BillingAddress, Order, OrderItem, ShippingAddress
from storesync.models.product import Product, ProductImage, ProductVariant
from storesync.models.shop import Shop
from storesync.models.sync_log import EntityType, SyncLog, SyncStatus

__all__ = [
    "Shop",
    "Product",
    "ProductVariant",
    "ProductImage",
    "Customer",
    "CustomerAddress",
    "Order",
    "OrderItem",
    "ShippingAddress",
    "BillingAddress",
    "Collection",
    "CollectionProduct",
    "SyncLog",
    "SyncStatus",
    "EntityType",
]
