"""
Collection models - Shopify collections and their product memberships.
"""
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storesync.core.database import Base

if TYPE_CHECKING:
    from storesync.models.shop import Shop


class Collection(Base):
    """Shopify collection (manual or smart)."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shopify_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    shop_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("shops.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    handle: Mapped[Optional[str]] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    shop: Mapped["Shop"] = relationship("Shop", back_populates="collections")

    def __repr__(self) -> str:
        return f"<Collection {self.handle}>"


class CollectionProduct(Base):
    """Join row between a collection and a product."""

    __tablename__ = "collection_products"

    collection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("collections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )
