"""
Greeting service packaged for container deployment.

Answers ``GET /`` with a fixed plain-text greeting on port 3000 (or ``PORT``).
"""
import logging
import os
import socket
import sys

from flask import Flask
from werkzeug.serving import make_server, select_address_family

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

GREETING = "Hello from Docker & Kubernetes!"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
LISTEN_QUEUE = 128

app = Flask(__name__)


class BindError(Exception):
    """The listening socket could not be established."""


@app.get("/")
def hello():
    return GREETING, 200, {"Content-Type": "text/plain; charset=utf-8"}


def load_port(environ=None) -> int:
    environ = os.environ if environ is None else environ
    raw = environ.get("PORT", str(DEFAULT_PORT))
    try:
        port = int(raw)
    except ValueError as exc:
        raise BindError(f"invalid port value {raw!r}") from exc
    if not 0 <= port <= 65535:
        raise BindError(f"port {port} is outside 0-65535")
    return port


def load_host(environ=None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get("HOST", DEFAULT_HOST)


def _bind_socket(host: str, port: int) -> socket.socket:
    family = select_address_family(host, port)
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_QUEUE)
    except (OSError, OverflowError) as exc:
        sock.close()
        raise BindError(f"could not bind {host}:{port}: {exc}") from exc
    return sock


def start(port: int, host: str = DEFAULT_HOST):
    """Bind ``host:port`` and return a threaded server ready to serve ``app``.

    The socket is bound here rather than by werkzeug, whose own bind failure
    path prints to stderr and calls ``sys.exit``.
    """
    sock = _bind_socket(host, port)
    try:
        # make_server duplicates the descriptor, so ours can be closed after.
        server = make_server(host, port, app, threaded=True, fd=sock.fileno())
    finally:
        sock.close()
    logger.info("Server running on port %d", server.port)
    return server


def main() -> None:
    try:
        server = start(load_port(), load_host())
    except BindError as exc:
        logger.error("Failed to start server: %s", exc)
        sys.exit(1)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
