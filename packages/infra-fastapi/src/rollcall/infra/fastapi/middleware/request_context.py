"""Middleware populating the request context from HTTP headers.

Headers:
- ``X-Identity-ID``: the acting identity (UUID). Absent or malformed means
  the request is anonymous; endpoints that need an actor reject it.
- ``X-Correlation-ID``: optional. Falls back to the request id, then to a
  fresh UUID. Echoed on the response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from rollcall.foundation.application import (
    MIDDLEWARE_PRIORITY_REQUEST_CONTEXT,
    MiddlewareContribution,
    clear_request_context,
    set_request_context,
)
from rollcall.infra.fastapi.middleware.request_id import extract_header, get_request_id

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

IDENTITY_ID_HEADER = "X-Identity-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

logger = logging.getLogger(__name__)


def _parse_identity(raw: str) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        logger.info("identity_header_malformed")
        return None


class RequestContextMiddleware:
    """Pure ASGI middleware; sets and clears the request context per request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = scope.get("headers", [])
        identity_id = _parse_identity(extract_header(headers, b"x-identity-id"))
        correlation_id = (
            extract_header(headers, b"x-correlation-id") or get_request_id() or str(uuid4())
        )

        token = set_request_context(correlation_id=correlation_id, identity_id=identity_id)

        async def send_with_correlation_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                resp_headers = list(message.get("headers", []))
                resp_headers.append((b"x-correlation-id", correlation_id.encode("latin-1")))
                message = {**message, "headers": resp_headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_correlation_id)
        finally:
            clear_request_context(token)


contribution = MiddlewareContribution(
    RequestContextMiddleware, priority=MIDDLEWARE_PRIORITY_REQUEST_CONTEXT
)
