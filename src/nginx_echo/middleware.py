from __future__ import annotations

import logging

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from nginx_echo.core.errors import BodyReadError

logger = logging.getLogger(__name__)

BODY_TOO_LARGE = "http: request body too large"


class BodyLimitMiddleware:
    """Caps the number of body bytes a handler can read from one request.

    The check happens inside ``receive``, so the error surfaces in whichever
    handler reads the body; requests whose body is never read are unaffected.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int = 1048576) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = self.max_body_bytes
        declared = Headers(scope=scope).get("content-length", "")
        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            if declared.isdigit() and int(declared) > limit:
                raise BodyReadError(BODY_TOO_LARGE)

            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise BodyReadError(BODY_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)


class HeadResponseWriter:
    """ASGI ``send`` adapter for HEAD responses.

    Status and headers (including the Content-Length of the full response)
    go through unchanged; body bytes are counted and dropped.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self._status = 0
        self.size = 0

    @property
    def status(self) -> int:
        return self._status or 200

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self._status = message["status"]
        elif message["type"] == "http.response.body":
            self.size += len(message.get("body", b""))
            message = {**message, "body": b""}
        await self._send(message)


class HeadResponseMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "HEAD":
            await self.app(scope, receive, send)
            return

        writer = HeadResponseWriter(send)
        await self.app(scope, receive, writer)
        logger.debug("HEAD %s -> %d, %d body bytes suppressed", scope.get("path", ""), writer.status, writer.size)
