"""
Error taxonomy for the sync and webhook reconciliation engine.

Remote platform failures are raised by the GraphQL client as ShopifyAPIError
(see storesync.services.shopify_client); everything here is local.
"""
from typing import Optional


class StoreSyncError(Exception):
    """Base class for all engine errors."""


class MappingError(StoreSyncError):
    """A remote record has an unexpected or malformed shape."""

    def __init__(self, message: str, remote_id: Optional[str] = None) -> None:
        self.remote_id = remote_id
        if remote_id:
            message = f"{message} (record {remote_id})"
        super().__init__(message)


class PersistenceError(StoreSyncError):
    """A repository write failed."""


class ShopSyncError(StoreSyncError):
    """Shop-level sync failed; no other entity type can proceed."""


class SyncInProgressError(StoreSyncError):
    """Another sync run is already active for this shop."""

    def __init__(self, shop_domain: str) -> None:
        self.shop_domain = shop_domain
        super().__init__(f"A sync is already running for {shop_domain}")


class AppUrlNotConfiguredError(StoreSyncError):
    """The webhook base URL could not be resolved from env or config file."""


class ReconciliationPartialFailure(StoreSyncError):
    """A single webhook subscription create or delete failed."""

    def __init__(self, topic: str, message: str) -> None:
        self.topic = topic
        super().__init__(f"{topic}: {message}")
