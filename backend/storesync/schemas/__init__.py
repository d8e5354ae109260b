"""
Pydantic schemas package.
"""
from storesync.schemas.shop import (
    ShopBase,
    ShopBootstrapResponse,
    ShopResponse,
    ShopSessionCreate,
)
from storesync.schemas.sync import (
    SyncLogResponse,
    SyncStatusResponse,
    SyncTriggerResponse,
)
from storesync.schemas.webhook import (
    ReconciliationResponse,
    ShopWebhookUpdateResponse,
    TopicResultResponse,
    WebhookUrlUpdateRequest,
    WebhookUrlUpdateResponse,
)

__all__ = [
    # Shop
    "ShopBase",
    "ShopSessionCreate",
    "ShopResponse",
    "ShopBootstrapResponse",
    # Sync
    "SyncLogResponse",
    "SyncStatusResponse",
    "SyncTriggerResponse",
    # Webhooks
    "TopicResultResponse",
    "ReconciliationResponse",
    "WebhookUrlUpdateRequest",
    "ShopWebhookUpdateResponse",
    "WebhookUrlUpdateResponse",
]
