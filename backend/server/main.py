"""
Process entry point for the relay.

    speech-relay                   (console script)
    python -m server.main          (from backend/)

Startup is fail-fast: missing configuration or a failed bind exits the
process with status 1. The listening socket is bound here, before uvicorn
starts, so a bind failure is logged like every other startup error.
"""

from __future__ import annotations

import socket
import sys

import uvicorn
from dotenv import load_dotenv

from config import AppConfig
from errors import ConfigError
from observability.logger import log_event
from server.app import create_app


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port. Raises OSError if the address is taken."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen()
    except OSError:
        sock.close()
        raise
    return sock


def main() -> None:
    """Load config, build the app and serve until interrupted."""
    load_dotenv()

    try:
        config = AppConfig.load_from_env()
    except ConfigError as exc:
        log_event({
            "level": "error",
            "event_type": "CONFIG_ERROR",
            "message": str(exc),
        })
        sys.exit(1)

    app = create_app(config)

    try:
        sock = bind_listener(config.host, config.port)
    except OSError as exc:
        log_event({
            "level": "error",
            "event_type": "SERVER_BIND_FAILED",
            "host": config.host,
            "port": config.port,
            "message": str(exc),
        })
        sys.exit(1)

    log_event({
        "event_type": "SERVER_STARTING",
        "host": config.host,
        "port": config.port,
        "region": config.speechmatics_region,
    })

    server = uvicorn.Server(uvicorn.Config(app, log_level=config.log_level.lower()))
    server.run(sockets=[sock])


if __name__ == "__main__":
    main()
