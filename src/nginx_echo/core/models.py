from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ProxyHeaders:
    """Names of the headers a trusted proxy uses to forward client metadata."""

    host: str = "X-Nginx-Echo-Host"
    ip: str = "X-Nginx-Echo-Ip"
    scheme: str = "X-Nginx-Echo-Scheme"

    def names(self) -> Tuple[str, str, str]:
        return (self.host, self.ip, self.scheme)


@dataclass(frozen=True)
class ResolvedOrigin:
    host: str = ""
    ip: str = ""
    scheme: str = ""


@dataclass(frozen=True)
class RequestTarget:
    """Components of the request target as the client sent it."""

    path: str = ""
    raw_path: str = ""
    raw_query: str = ""
    force_query: bool = False
    fragment: str = ""
    opaque: str = ""

    # Raw (still escaped) user-info of an absolute-form target, None when absent
    user: Optional[str] = None


@dataclass(frozen=True)
class BodyRepresentation:
    data: Optional[str] = None
    json: Any = None


def fold_multimap(values: Mapping[str, List[str]]) -> Dict[str, Any]:
    """Collapse single-element value lists to bare strings, keys sorted."""
    out: Dict[str, Any] = {}
    for key in sorted(values):
        v = values[key]
        out[key] = v[0] if len(v) == 1 else list(v)
    return out


@dataclass
class EchoResponse:
    origin: str
    method: str
    headers: Dict[str, Any]
    url: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "origin": self.origin,
            "method": self.method,
            "headers": self.headers,
            "url": self.url,
        }
        if self.params:
            out["params"] = self.params
        return out


@dataclass
class EchoBodyResponse(EchoResponse):
    data: Optional[str] = None
    json: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.data:
            out["data"] = self.data
        if self.json is not None:
            out["json"] = self.json
        return out


@dataclass(frozen=True)
class ErrorResponse:
    code: int
    error: str
    detail: str = ""

    @classmethod
    def for_status(cls, code: int, detail: str = "") -> "ErrorResponse":
        try:
            phrase = HTTPStatus(code).phrase
        except ValueError:
            phrase = ""
        return cls(code=code, error=phrase, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "error": self.error}
        if self.detail:
            out["detail"] = self.detail
        return out
