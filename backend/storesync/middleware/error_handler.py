"""
Global error handling middleware.

Uses pure ASGI middleware (not BaseHTTPMiddleware) to avoid breaking
async generator dependencies like get_db_session().
"""
import json

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from storesync.core.exceptions import AppUrlNotConfiguredError, SyncInProgressError
from storesync.core.logging import get_logger
from storesync.services.shopify_client import ShopifyAPIError

logger = get_logger(__name__)

# Engine errors that escape a route map onto these statuses; anything else is a 500
_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (SyncInProgressError, 409),
    (ShopifyAPIError, 502),
    (AppUrlNotConfiguredError, 503),
)


def _status_for(error: Exception) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


class ErrorHandlerMiddleware:
    """
    Pure ASGI error handler that turns unhandled exceptions into JSON
    responses.

    HTTPException is left to FastAPI's own handler.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            if isinstance(e, HTTPException):
                raise

            path = scope.get("path", "unknown")
            if response_started:
                # Headers already sent, can't change the response
                logger.exception("Unhandled exception after response started", error=str(e), path=path)
                raise

            status_code = _status_for(e)
            if status_code == 500:
                logger.exception("Unhandled exception", error=str(e), path=path)
                detail = "Internal server error"
            else:
                logger.warning("Request failed", error=str(e), path=path, status_code=status_code)
                detail = str(e)

            await _send_json(send, status_code, {"detail": detail, "type": type(e).__name__})


async def _send_json(send: Send, status_code: int, payload: dict) -> None:
    body = json.dumps(payload).encode("utf-8")
    await send({
        "type": "http.response.start",
        "status": status_code,
        "headers": [
            [b"content-type", b"application/json"],
            [b"content-length", str(len(body)).encode()],
        ],
    })
    await send({
        "type": "http.response.body",
        "body": body,
    })
