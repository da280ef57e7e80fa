from __future__ import annotations

from typing import List, Mapping

from nginx_echo.core.headers import canonical_header_key
from nginx_echo.core.models import ProxyHeaders, ResolvedOrigin


def _first(headers: Mapping[str, List[str]], name: str) -> str:
    values = headers.get(canonical_header_key(name)) or []
    return values[0] if values else ""


def resolve_origin(headers: Mapping[str, List[str]], proxy: ProxyHeaders) -> ResolvedOrigin:
    """Read host, client IP and scheme forwarded by the proxy.

    Values are passed through verbatim; the proxy is trusted and nothing
    is validated here.
    """
    return ResolvedOrigin(
        host=_first(headers, proxy.host),
        ip=_first(headers, proxy.ip),
        scheme=_first(headers, proxy.scheme),
    )
