from __future__ import annotations


class EchoError(Exception):
    """Base class for failures that replace the echo body with an error body."""

    status_code = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class BodyReadError(EchoError):
    pass


class JSONBodyError(EchoError):
    pass


class FormParseError(EchoError):
    pass


class ConfigError(RuntimeError):
    pass
