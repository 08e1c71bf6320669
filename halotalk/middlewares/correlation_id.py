"""
Middleware for request correlation ID tracking.

Covers both plain HTTP requests and WebSocket upgrades, so every log line
written while serving a chat connection carries the same short ID.
"""

import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from halotalk.constants import CORRELATION_ID_LENGTH

# Context variable for storing correlation ID per request / connection
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware:
    """
    ASGI middleware adding correlation IDs to HTTP and WebSocket scopes.

    This middleware:
    - Extracts correlation ID from X-Correlation-ID header or generates one
    - Limits all correlation IDs to 8 characters
    - Stores it in scope["state"]["request_id"] for endpoints
    - Stores it in a context variable for logging
    - Echoes it in HTTP response headers
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        cid = headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        cid = cid[:CORRELATION_ID_LENGTH]

        scope.setdefault("state", {})["request_id"] = cid
        correlation_id.set(cid)

        if scope["type"] == "websocket":
            await self.app(scope, receive, send)
            return

        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[CORRELATION_HEADER] = cid
            await send(message)

        await self.app(scope, receive, send_with_header)


def get_correlation_id() -> str:
    """
    Get the correlation ID for the current request or connection context.

    Returns:
        The correlation ID string, or empty string if not set.
    """
    return correlation_id.get()
