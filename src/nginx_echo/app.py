from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import ClientDisconnect, Request
from starlette.types import Receive, Scope, Send

from nginx_echo.config import EchoConfig
from nginx_echo.core.body import classify_body
from nginx_echo.core.echo import assemble_echo, has_body
from nginx_echo.core.errors import BodyReadError, EchoError
from nginx_echo.core.headers import group_headers
from nginx_echo.core.models import RequestTarget
from nginx_echo.core.urls import parse_request_target
from nginx_echo.middleware import BodyLimitMiddleware, HeadResponseMiddleware
from nginx_echo.responses import PrettyJSONResponse, error_response

logger = logging.getLogger(__name__)


def _raw_headers(request: Request) -> List[Tuple[str, str]]:
    # Names are tokens (ASCII); values are passed on as UTF-8 text.
    return [(k.decode("latin-1"), v.decode("utf-8", errors="replace")) for k, v in request.headers.raw]


def request_target(scope: Scope) -> RequestTarget:
    raw_path = scope.get("raw_path") or scope.get("path", "").encode("utf-8")
    # Some servers leave the query on raw_path
    raw_path = raw_path.split(b"?", 1)[0]
    target = raw_path.decode("utf-8", errors="replace")

    query = scope.get("query_string", b"").decode("utf-8", errors="replace")
    if query:
        target += "?" + query

    authority_form = scope.get("method") == "CONNECT" and not target.startswith("/")
    return parse_request_target(target, authority_form=authority_form)


async def read_body(request: Request, timeout: float) -> bytes:
    # Request.body() caches the bytes, so later reads replay them.
    try:
        return await asyncio.wait_for(request.body(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise BodyReadError("http: timeout reading request body") from e
    except ClientDisconnect as e:
        raise BodyReadError("client disconnected while sending body") from e


async def echo(request: Request) -> PrettyJSONResponse:
    config: EchoConfig = request.app.state.config
    headers = group_headers(_raw_headers(request))

    body = None
    if has_body(request.method):
        payload = await read_body(request, config.read_timeout)
        content_type = (headers.get("Content-Type") or [""])[0]
        body = classify_body(payload, content_type)

    resp = assemble_echo(
        request.method,
        request_target(request.scope),
        headers,
        config.proxy_headers,
        body,
    )
    return PrettyJSONResponse(resp.to_dict())


class EchoEndpoint:
    """Serves every request, whatever its method or target."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await echo(Request(scope, receive))
        await response(scope, receive, send)


async def handle_echo_error(request: Request, exc: EchoError) -> PrettyJSONResponse:
    logger.info("%s %s failed: %s", request.method, request.scope.get("path", ""), exc.detail)
    return error_response(exc.status_code, exc.detail)


def create_app(config: Optional[EchoConfig] = None) -> Starlette:
    config = config or EchoConfig()

    app = Starlette(
        middleware=[
            Middleware(HeadResponseMiddleware),
            Middleware(BodyLimitMiddleware, max_body_bytes=config.max_body_bytes),
        ],
        exception_handlers={EchoError: handle_echo_error},
    )
    # No routes: every target (including "*", authority and absolute forms)
    # falls through to the router's default handler.
    app.router.default = EchoEndpoint()
    app.router.redirect_slashes = False
    app.state.config = config
    return app
