"""
Core package containing configuration, database, security, logging and errors.
"""
from storesync.core.config import settings
from storesync.core.database import Base, DbSession, get_db_session
from storesync.core.exceptions import (
    AppUrlNotConfiguredError,
    MappingError,
    PersistenceError,
    ReconciliationPartialFailure,
    ShopSyncError,
    StoreSyncError,
    SyncInProgressError,
)
from storesync.core.logging import configure_logging, get_logger
from storesync.core.security import decrypt_token, encrypt_token

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "encrypt_token",
    "decrypt_token",
    "StoreSyncError",
    "MappingError",
    "PersistenceError",
    "ShopSyncError",
    "SyncInProgressError",
    "AppUrlNotConfiguredError",
    "ReconciliationPartialFailure",
]
