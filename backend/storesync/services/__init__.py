"""
Services package for business logic layer.
"""
from storesync.services.initial_sync import (
    EntityOutcome,
    InitialSyncService,
    SyncRunResult,
    run_initial_sync,
)
from storesync.services.shopify_client import ShopifyAPIError, ShopifyGraphQLClient
from storesync.services.webhook_registration import (
    DEFAULT_WEBHOOK_TOPICS,
    ReconciliationResult,
    WebhookReconciler,
)

__all__ = [
    "ShopifyGraphQLClient",
    "ShopifyAPIError",
    "InitialSyncService",
    "EntityOutcome",
    "SyncRunResult",
    "run_initial_sync",
    "WebhookReconciler",
    "ReconciliationResult",
    "DEFAULT_WEBHOOK_TOPICS",
]
