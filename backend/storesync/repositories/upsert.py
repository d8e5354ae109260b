"""
Upsert repository - idempotent writes keyed by Shopify's immutable ids.
"""
from typing import Any, Iterable, Optional, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storesync.core.database import Base
from storesync.core.exceptions import PersistenceError
from storesync.models.collection import CollectionProduct

RowType = TypeVar("RowType", bound=Base)

# Columns an update must never overwrite
_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class UpsertRepository:
    """
    Create-or-update access to every synced table.

    Not bound to one model: the sync strategies pass the model class, the
    unique key and the two field sets produced by the mappers.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(
        self,
        model: type[RowType],
        key: dict[str, Any],
        create_fields: dict[str, Any],
        update_fields: dict[str, Any],
    ) -> RowType:
        """
        Insert a row if none matches `key`, else update its mutable fields.

        Calling twice with identical input leaves the row untouched: the ORM
        only emits an UPDATE for attributes whose value actually changed.
        """
        try:
            stmt = select(model).filter_by(**key)
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()

            if row is None:
                row = model(**{**create_fields, **key})
                self.session.add(row)
            else:
                for field, value in update_fields.items():
                    if field in _IMMUTABLE_FIELDS or field in key:
                        continue
                    setattr(row, field, value)

            await self.session.flush()
            return row
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to upsert {model.__tablename__} {key}: {e}"
            ) from e

    async def create(self, model: type[RowType], fields: dict[str, Any]) -> RowType:
        """Insert a row unconditionally."""
        try:
            row = model(**fields)
            self.session.add(row)
            await self.session.flush()
            return row
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create {model.__tablename__}: {e}") from e

    async def local_id(self, model: type[Base], shopify_id: Optional[int]) -> Optional[int]:
        """Resolve a Shopify id to the local primary key, or None if not synced yet."""
        if shopify_id is None:
            return None
        stmt = select(model.id).where(model.shopify_id == shopify_id)  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace_collection_products(
        self,
        collection_id: int,
        product_ids: Iterable[int],
    ) -> int:
        """Replace a collection's product memberships; returns the number linked."""
        unique_ids = list(dict.fromkeys(product_ids))
        try:
            await self.session.execute(
                delete(CollectionProduct).where(CollectionProduct.collection_id == collection_id)
            )
            self.session.add_all(
                CollectionProduct(collection_id=collection_id, product_id=product_id)
                for product_id in unique_ids
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to link products to collection {collection_id}: {e}"
            ) from e
        return len(unique_ids)
