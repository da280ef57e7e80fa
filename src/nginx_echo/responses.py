from __future__ import annotations

import json
from typing import Any

from starlette.responses import Response

from nginx_echo.core.models import ErrorResponse


class PrettyJSONResponse(Response):
    """JSON rendered with a 2-space indent and without ASCII/HTML escaping."""

    media_type = "application/json; charset=utf-8"

    def render(self, content: Any) -> bytes:
        # Serialisation errors are bugs and are left to propagate.
        text = json.dumps(content, ensure_ascii=False, allow_nan=False, indent=2)
        return (text + "\n").encode("utf-8", errors="replace")


def error_response(code: int, detail: str = "") -> PrettyJSONResponse:
    body = ErrorResponse.for_status(code, detail)
    return PrettyJSONResponse(body.to_dict(), status_code=code)
