from __future__ import annotations

import string
from typing import List, Tuple
from urllib.parse import quote, unquote

from nginx_echo.core.models import RequestTarget, ResolvedOrigin

_UNRESERVED = string.ascii_letters + string.digits + "-_.~"

# Characters left alone when escaping each URL component (besides unreserved).
_PATH_SAFE = "$&+,/:;=@"
_HOST_SAFE = "!$&'()*+,;=:[]<>\""
_FRAGMENT_SAFE = "$&+,/:;=?@!()*"

# A raw path may also carry these (plus %XX escapes) and still be used as is.
_RAW_PATH_CHARS = frozenset(_UNRESERVED + _PATH_SAFE + "!'()*[]%")


def _split_scheme(raw: str) -> Tuple[str, str]:
    for i, c in enumerate(raw):
        if c.isascii() and c.isalpha():
            continue
        if c.isascii() and (c.isdigit() or c in "+-."):
            if i == 0:
                return "", raw
            continue
        if c == ":" and i > 0:
            return raw[:i].lower(), raw[i + 1:]
        return "", raw
    return "", raw


def parse_request_target(target: str, *, authority_form: bool = False) -> RequestTarget:
    """Split a request target (origin-form, absolute-form or ``*``).

    ``authority_form`` marks a CONNECT target such as ``example.com:443``,
    which has no path. A ``#`` is not treated as a fragment separator here:
    clients never send fragments, so one found in a target is part of the
    path or query.
    """
    if target == "*":
        return RequestTarget(path="*")
    if authority_form:
        target = "http://" + target

    scheme, rest = _split_scheme(target)

    force_query = False
    if rest.endswith("?") and rest.count("?") == 1:
        force_query, rest, raw_query = True, rest[:-1], ""
    else:
        rest, _, raw_query = rest.partition("?")

    if scheme and not rest.startswith("/"):
        return RequestTarget(opaque=rest, raw_query=raw_query, force_query=force_query)

    user = None
    if scheme and rest.startswith("//"):
        authority, slash, tail = rest[2:].partition("/")
        rest = slash + tail
        userinfo, at, _host = authority.rpartition("@")
        if at:
            user = userinfo

    path = unquote(rest)
    raw_path = rest if escape_path(path) != rest else ""
    return RequestTarget(
        path=path,
        raw_path=raw_path,
        raw_query=raw_query,
        force_query=force_query,
        user=user,
    )


def escape_path(path: str) -> str:
    return quote(path, safe=_PATH_SAFE)


def _valid_encoded(raw_path: str) -> bool:
    return all(c in _RAW_PATH_CHARS for c in raw_path)


def escaped_path(path: str, raw_path: str) -> str:
    """Prefer the client's own encoding when it decodes back to ``path``."""
    if raw_path and _valid_encoded(raw_path) and unquote(raw_path) == path:
        return raw_path
    if path == "*":
        return path
    return escape_path(path)


def reconstruct_url(target: RequestTarget, origin: ResolvedOrigin) -> str:
    """Rebuild the URL the client asked for, as seen in front of the proxy.

    A bare ``/`` path is left out, so the root of ``https://example.com``
    is echoed as ``https://example.com``.
    """
    scheme, host = origin.scheme, origin.host
    path = "" if target.path == "/" else target.path

    parts: List[str] = []
    if scheme:
        parts.append(scheme + ":")

    if target.opaque:
        parts.append(target.opaque)
    else:
        if scheme or host or target.user is not None:
            if host or path or target.user is not None:
                parts.append("//")
            if target.user is not None:
                parts.append(target.user + "@")
            if host:
                parts.append(quote(host, safe=_HOST_SAFE))

        p = escaped_path(path, target.raw_path)
        if p and not p.startswith("/") and host:
            parts.append("/")
        if not parts and ":" in p.partition("/")[0]:
            # keep a relative path from being read as scheme:opaque
            parts.append("./")
        parts.append(p)

    if target.force_query or target.raw_query:
        parts.append("?" + target.raw_query)
    if target.fragment:
        parts.append("#" + quote(target.fragment, safe=_FRAGMENT_SAFE))

    return "".join(parts)
