from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from nginx_echo import __version__
from nginx_echo.app import create_app
from nginx_echo.config import EchoConfig, load_config
from nginx_echo.core.errors import ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nginx-echo", description="Echo HTTP requests back as JSON")
    p.add_argument("-c", "--config", type=Path, help="YAML settings file")
    p.add_argument("--host", dest="listen_host", help="Address to listen on (default 127.0.0.1)")
    p.add_argument("--port", dest="listen_port", type=int, help="Port to listen on (default 7777)")
    p.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Logging level (default info)",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def serve(config: EchoConfig) -> None:
    logger.info("listening on http://%s:%d", config.listen_host, config.listen_port)
    uvicorn.run(
        create_app(config),
        host=config.listen_host,
        port=config.listen_port,
        http="h11",
        h11_max_incomplete_event_size=config.max_header_bytes,
        timeout_keep_alive=config.keep_alive_timeout,
        log_level=config.log_level.lower(),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(
            args.config,
            listen_host=args.listen_host,
            listen_port=args.listen_port,
            log_level=args.log_level,
        )
    except ConfigError as e:
        print(f"nginx-echo: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)
    serve(config)
    return 0
