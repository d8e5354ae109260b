"""
Shop repository for data access operations.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select

from storesync.models.shop import Shop
from storesync.repositories.base import BaseRepository


class ShopRepository(BaseRepository[Shop]):
    """Repository for Shop model operations."""

    model = Shop

    async def get_by_domain(self, domain: str) -> Optional[Shop]:
        """Get a shop by its Shopify domain."""
        stmt = select(Shop).where(Shop.domain == domain)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_for_session(
        self,
        domain: str,
        access_token_encrypted: str,
        scopes: Optional[str],
        email: Optional[str] = None,
    ) -> tuple[Shop, bool]:
        """
        Create the shop on first authenticated session, refresh it afterwards.
        Returns (shop, created) tuple.
        """
        existing = await self.get_by_domain(domain)

        if existing:
            existing.access_token_encrypted = access_token_encrypted
            existing.scopes = scopes
            if email:
                existing.email = email
            await self.session.flush()
            await self.session.refresh(existing)
            return existing, False

        shop = Shop(
            domain=domain,
            # Placeholder until the shop sync reads the real name
            name=domain.split(".")[0],
            email=email,
            access_token_encrypted=access_token_encrypted,
            scopes=scopes,
        )
        self.session.add(shop)
        await self.session.flush()
        await self.session.refresh(shop)
        return shop, True

    async def upsert_from_remote(self, domain: str, fields: dict[str, Any]) -> Shop:
        """Apply the fields read from Shopify's `shop` query, keyed by domain."""
        shop = await self.get_by_domain(domain)
        if shop is None:
            shop = Shop(domain=domain, **fields)
            self.session.add(shop)
        else:
            for field, value in fields.items():
                setattr(shop, field, value)
        await self.session.flush()
        return shop

    async def mark_synced(self, shop_id: int, sync_time: Optional[datetime] = None) -> None:
        """Stamp the shop's last-sync timestamp."""
        shop = await self.get_by_id(shop_id)
        if shop is None:
            return
        shop.last_sync_at = sync_time or datetime.now(timezone.utc)
        await self.session.flush()

    async def get_with_tokens(self) -> list[Shop]:
        """All shops that have a stored access token."""
        stmt = select(Shop).where(Shop.access_token_encrypted.is_not(None)).order_by(Shop.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
