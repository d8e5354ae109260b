"""
Middleware package.
"""
from storesync.middleware.error_handler import ErrorHandlerMiddleware
from storesync.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
]
