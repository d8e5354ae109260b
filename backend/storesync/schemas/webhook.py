"""
Webhook reconciliation Pydantic schemas.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storesync.services.webhook_registration import TopicStatus


class TopicResultResponse(BaseModel):
    topic: str
    status: TopicStatus
    callback_url: Optional[str] = Field(None, alias="callbackUrl")
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ReconciliationResponse(BaseModel):
    """Per-topic statuses plus the stale subscriptions removed."""

    topics: list[TopicResultResponse]
    deleted: list[str]
    delete_failures: list[str] = Field(alias="deleteFailures")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class WebhookUrlUpdateRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)


class ShopWebhookUpdateResponse(BaseModel):
    shop_domain: str = Field(alias="shopDomain")
    success: bool
    result: Optional[ReconciliationResponse] = None
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class WebhookUrlUpdateResponse(BaseModel):
    url: str
    shops: list[ShopWebhookUpdateResponse]

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
