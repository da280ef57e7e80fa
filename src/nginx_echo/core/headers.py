from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Tuple

from nginx_echo.core.models import ProxyHeaders, ResolvedOrigin, fold_multimap

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~"
    "0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
)


def canonical_header_key(name: str) -> str:
    """MIME canonical form: ``content-type`` -> ``Content-Type``.

    Names containing characters outside the HTTP token set are returned as is.
    """
    if not name or any(c not in _TOKEN_CHARS for c in name):
        return name

    out = []
    upper = True
    for c in name:
        out.append(c.upper() if upper else c.lower())
        upper = c == "-"
    return "".join(out)


def group_headers(raw: Iterable[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Group raw (name, value) pairs by canonical name, keeping arrival order."""
    grouped: Dict[str, List[str]] = {}
    for name, value in raw:
        grouped.setdefault(canonical_header_key(name), []).append(value)
    return grouped


def project_headers(
    headers: Mapping[str, List[str]],
    origin: ResolvedOrigin,
    proxy: ProxyHeaders,
) -> Dict[str, Any]:
    headers = {k: list(v) for k, v in headers.items()}

    encodings = headers.pop("Transfer-Encoding", [])
    headers["Host"] = [origin.host]
    if encodings:
        headers["Transfer-Encoding"] = [",".join(encodings)]

    hidden = {canonical_header_key(n) for n in proxy.names()}
    return fold_multimap({k: v for k, v in headers.items() if k not in hidden})
