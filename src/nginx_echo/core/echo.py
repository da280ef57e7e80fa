from __future__ import annotations

from typing import List, Mapping, Optional

from nginx_echo.core.forms import parse_query
from nginx_echo.core.headers import project_headers
from nginx_echo.core.models import (
    BodyRepresentation,
    EchoBodyResponse,
    EchoResponse,
    ProxyHeaders,
    RequestTarget,
    fold_multimap,
)
from nginx_echo.core.origin import resolve_origin
from nginx_echo.core.urls import reconstruct_url

# Methods whose body is read and described in the echo.
BODY_METHODS = frozenset({"DELETE", "PATCH", "POST", "PUT"})


def has_body(method: str) -> bool:
    return method in BODY_METHODS


def assemble_echo(
    method: str,
    target: RequestTarget,
    headers: Mapping[str, List[str]],
    proxy: ProxyHeaders,
    body: Optional[BodyRepresentation] = None,
) -> EchoResponse:
    """Describe one request.

    ``headers`` is the grouped inbound header set (see ``group_headers``).
    Methods in BODY_METHODS get the body-bearing variant, filled from
    ``body`` when given; all others get the body-less one.
    """
    origin = resolve_origin(headers, proxy)

    common = dict(
        origin=origin.ip,
        method=method,
        headers=project_headers(headers, origin, proxy),
        url=reconstruct_url(target, origin),
        params=fold_multimap(parse_query(target.raw_query)),
    )

    if not has_body(method):
        return EchoResponse(**common)

    body = body or BodyRepresentation()
    return EchoBodyResponse(**common, data=body.data, json=body.json)
