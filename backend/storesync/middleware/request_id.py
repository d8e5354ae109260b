"""
Request ID middleware for tracing.

Uses pure ASGI middleware (not BaseHTTPMiddleware) to avoid breaking
async generator dependencies like get_db_session().
"""
import uuid

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = b"x-request-id"


def _incoming_request_id(scope: Scope) -> str | None:
    for header_name, header_value in scope.get("headers", []):
        if header_name == REQUEST_ID_HEADER:
            return header_value.decode("latin-1") or None
    return None


class RequestIdMiddleware:
    """
    Pure ASGI middleware that tags each request with an id.

    The id is taken from X-Request-ID when the caller sends one, bound to the
    structlog context for every log line of the request and echoed back in
    the response headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _incoming_request_id(scope) or str(uuid.uuid4())

        # Context from a previous request on this worker must not leak in
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append([REQUEST_ID_HEADER, request_id.encode("latin-1")])
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_request_id)
