from __future__ import annotations

import base64
import json
import logging
from typing import Any

from nginx_echo.core.errors import JSONBodyError
from nginx_echo.core.forms import parse_form
from nginx_echo.core.models import BodyRepresentation

logger = logging.getLogger(__name__)

FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
JSON_MEDIA_TYPE = "application/json"
DEFAULT_MEDIA_TYPE = "application/octet-stream"

# Text bodies are checked for presence only and never echoed.
DROPPED_MEDIA_TYPES = frozenset({"text/html", "text/plain"})

_JSON_WHITESPACE = " \t\n\r"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character {name!r} looking for beginning of value")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


def media_type(content_type: str) -> str:
    """Content-Type up to the first ``;``; parameters are ignored."""
    return content_type.partition(";")[0]


def encode_data_uri(body: bytes, media: str) -> str:
    payload = base64.b64encode(body).decode("ascii")
    return f"data:{media or DEFAULT_MEDIA_TYPE};base64,{payload}"


def decode_json(body: bytes) -> Any:
    """Decode the first JSON value in ``body``; anything after it is ignored."""
    text = body.decode("utf-8", errors="replace")
    start = len(text) - len(text.lstrip(_JSON_WHITESPACE))
    try:
        value, _ = _decoder.raw_decode(text, start)
    except (ValueError, RecursionError) as e:
        raise JSONBodyError(str(e)) from e
    return value


def classify_body(body: bytes, content_type: str) -> BodyRepresentation:
    if not body:
        return BodyRepresentation()

    media = media_type(content_type)

    if media in DROPPED_MEDIA_TYPES:
        logger.debug("dropping %d byte %s body", len(body), media)
        return BodyRepresentation()

    if media == FORM_MEDIA_TYPE:
        parse_form(body)
        return BodyRepresentation(data=body.decode("utf-8", errors="replace"))

    if media == JSON_MEDIA_TYPE:
        return BodyRepresentation(json=decode_json(body))

    logger.debug("encoding %d byte body as data URI (%s)", len(body), media or DEFAULT_MEDIA_TYPE)
    return BodyRepresentation(data=encode_data_uri(body, media))
