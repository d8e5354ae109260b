"""
Repository package for data access layer.
"""
from storesync.repositories.base import BaseRepository
from storesync.repositories.shop import ShopRepository
from storesync.repositories.sync_log import SyncLogRepository
from storesync.repositories.upsert import UpsertRepository

__all__ = [
    "BaseRepository",
    "ShopRepository",
    "SyncLogRepository",
    "UpsertRepository",
]
