from __future__ import annotations

import re
from typing import Dict, List
from urllib.parse import unquote_plus

from nginx_echo.core.errors import FormParseError

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _unescape(s: str) -> str:
    m = _BAD_ESCAPE.search(s)
    if m:
        raise ValueError(f'invalid URL escape "{s[m.start():m.start() + 3]}"')
    return unquote_plus(s)


def parse_pairs(raw: str, *, strict: bool = False) -> Dict[str, List[str]]:
    """Decode ``a=1&b=2&a=3`` into ``{"a": ["1", "3"], "b": ["2"]}``.

    Pairs with a bad percent escape or a ``;`` separator are dropped, or
    raise FormParseError when ``strict`` is set. A key without ``=`` maps
    to an empty value.
    """
    values: Dict[str, List[str]] = {}
    for pair in raw.split("&"):
        if not pair:
            continue
        try:
            if ";" in pair:
                raise ValueError("invalid semicolon separator in query")
            key, _, value = pair.partition("=")
            key, value = _unescape(key), _unescape(value)
        except ValueError as e:
            if strict:
                raise FormParseError(str(e)) from e
            continue
        values.setdefault(key, []).append(value)
    return values


def parse_query(raw_query: str) -> Dict[str, List[str]]:
    return parse_pairs(raw_query)


def parse_form(body: bytes) -> Dict[str, List[str]]:
    # Works on the raw bytes, independent of the request method.
    return parse_pairs(body.decode("utf-8", errors="replace"), strict=True)
