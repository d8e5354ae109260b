"""
Order models - Shopify orders, their line items and postal addresses.
"""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storesync.core.database import Base

if TYPE_CHECKING:
    from storesync.models.customer import Customer
    from storesync.models.shop import Shop


class Order(Base):
    """Shopify order."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("shop_id", "order_number", name="uq_orders_shop_order_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shopify_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    shop_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("shops.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)  # e.g. "1001"
    email: Mapped[Optional[str]] = mapped_column(String(255))
    financial_status: Mapped[Optional[str]] = mapped_column(String(50))
    fulfillment_status: Mapped[Optional[str]] = mapped_column(String(50))
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(10))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    shop: Mapped["Shop"] = relationship("Shop", back_populates="orders")
    customer: Mapped[Optional["Customer"]] = relationship("Customer", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
    )
    shipping_address: Mapped[Optional["ShippingAddress"]] = relationship(
        "ShippingAddress",
        cascade="all, delete-orphan",
        uselist=False,
    )
    billing_address: Mapped[Optional["BillingAddress"]] = relationship(
        "BillingAddress",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Order #{self.order_number}>"


class OrderItem(Base):
    """Order line item."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Line item GID; items synced without one can only be created, never matched
    shopify_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True, nullable=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_variant_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("product_variants.id", ondelete="SET NULL"),
        nullable=True,
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem {self.shopify_id} x{self.quantity}>"


class _OrderAddressColumns:
    """Postal columns shared by the shipping and billing address tables."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    company: Mapped[Optional[str]] = mapped_column(String(255))
    address1: Mapped[Optional[str]] = mapped_column(String(255))
    address2: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(255))
    province: Mapped[Optional[str]] = mapped_column(String(255))
    province_code: Mapped[Optional[str]] = mapped_column(String(10))
    country: Mapped[Optional[str]] = mapped_column(String(255))
    country_code: Mapped[Optional[str]] = mapped_column(String(10))
    zip: Mapped[Optional[str]] = mapped_column(String(50))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    name: Mapped[Optional[str]] = mapped_column(String(255))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)


class ShippingAddress(_OrderAddressColumns, Base):
    """Where an order ships to; at most one per order."""

    __tablename__ = "shipping_addresses"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )


class BillingAddress(_OrderAddressColumns, Base):
    """Billing address of an order; at most one per order."""

    __tablename__ = "billing_addresses"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
