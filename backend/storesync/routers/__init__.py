"""
API routers package.
"""
from storesync.routers.health import router as health_router
from storesync.routers.shops import router as shops_router
from storesync.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "shops_router",
    "webhooks_router",
]
