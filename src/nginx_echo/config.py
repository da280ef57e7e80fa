from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from nginx_echo.core.errors import ConfigError
from nginx_echo.core.models import ProxyHeaders

ENV_PREFIX = "NGINX_ECHO_"

_CASTS = {"str": str, "int": int, "float": float}


@dataclass(frozen=True)
class EchoConfig:
    # Headers set by the trusted proxy in front of the service
    host_header: str = "X-Nginx-Echo-Host"
    ip_header: str = "X-Nginx-Echo-Ip"
    scheme_header: str = "X-Nginx-Echo-Scheme"

    listen_host: str = "127.0.0.1"
    listen_port: int = 7777

    max_body_bytes: int = 1048576
    max_header_bytes: int = 16 * 1024

    # Seconds allowed for reading a request body
    read_timeout: float = 5.0

    # Seconds an idle keep-alive connection is held open
    keep_alive_timeout: int = 5

    log_level: str = "info"

    @property
    def proxy_headers(self) -> ProxyHeaders:
        return ProxyHeaders(host=self.host_header, ip=self.ip_header, scheme=self.scheme_header)


def _coerce(values: Mapping[str, Any], source: str) -> Dict[str, Any]:
    known = {f.name: f for f in fields(EchoConfig)}
    out: Dict[str, Any] = {}
    for key, raw in values.items():
        f = known.get(key)
        if f is None:
            raise ConfigError(f"Unknown setting {key!r} in {source}")
        cast = _CASTS[str(f.type)]
        try:
            out[key] = cast(str(raw).strip()) if cast is str else cast(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {key!r} in {source}: {raw!r}") from e
    return out


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _coerce(data, str(path))


def _read_env(env: Mapping[str, str]) -> Dict[str, Any]:
    found = {}
    for f in fields(EchoConfig):
        v = env.get(ENV_PREFIX + f.name.upper())
        if v is not None and v.strip():
            found[f.name] = v
    return _coerce(found, "environment")


def _validate(config: EchoConfig) -> EchoConfig:
    if config.max_body_bytes <= 0:
        raise ConfigError("max_body_bytes must be positive")
    if config.max_header_bytes <= 0:
        raise ConfigError("max_header_bytes must be positive")
    if config.read_timeout <= 0:
        raise ConfigError("read_timeout must be positive")
    if not all(name.strip() for name in config.proxy_headers.names()):
        raise ConfigError("proxy header names must not be empty")
    return config


def load_config(
    path: Optional[Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> EchoConfig:
    """Build the config from defaults, an optional YAML file, the environment
    (``NGINX_ECHO_<SETTING>``) and explicit overrides, later sources winning.

    Overrides set to None are ignored so CLI flags can be passed straight in.
    """
    config = EchoConfig()
    if path is not None:
        config = replace(config, **_read_file(Path(path)))
    config = replace(config, **_read_env(os.environ if env is None else env))

    given = {k: v for k, v in overrides.items() if v is not None}
    if given:
        config = replace(config, **_coerce(given, "arguments"))
    return _validate(config)
