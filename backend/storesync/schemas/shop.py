"""
Shop Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storesync.schemas.webhook import ReconciliationResponse


class ShopBase(BaseModel):
    """Base shop schema with common fields."""

    domain: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9][a-z0-9\-\.]*$")


class ShopSessionCreate(ShopBase):
    """Authenticated session handed over after OAuth."""

    access_token: str = Field(..., min_length=1, alias="accessToken")
    scopes: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ShopResponse(ShopBase):
    """Schema for shop API responses."""

    id: int
    shopify_id: Optional[int] = Field(None, alias="shopifyId")
    name: str
    email: Optional[str] = None
    currency: Optional[str] = None
    scopes: Optional[str] = None
    last_sync_at: Optional[datetime] = Field(None, alias="lastSyncAt")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ShopBootstrapResponse(BaseModel):
    """Outcome of a session bootstrap."""

    shop: ShopResponse
    created: bool
    initial_sync_scheduled: bool = Field(alias="initialSyncScheduled")
    webhooks: Optional[ReconciliationResponse] = None
    webhook_error: Optional[str] = Field(None, alias="webhookError")

    model_config = ConfigDict(populate_by_name=True)
