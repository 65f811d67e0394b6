"""One-shot network time, with the server taken from the environment by default."""

from __future__ import annotations

import os
from datetime import datetime, timezone

from .client import DEFAULT_TIMEOUT, Client
from .errors import InvalidArgument
from .message import SNTP_PORT

SERVER_ENV = "SNTP_SERVER"
DEFAULT_SERVER = "pool.ntp.org"


def parse_server(server: str) -> tuple[str, int]:
    """Split ``host[:port]``; the port defaults to 123."""
    host, sep, port_text = server.strip().rpartition(":")
    if not sep:
        host, port_text = port_text, ""
    if not host:
        raise InvalidArgument(f"Invalid SNTP server: {server!r}")
    if not port_text:
        return host, SNTP_PORT
    try:
        port = int(port_text)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid SNTP server port: {port_text!r}") from exc
    if not 1 <= port <= 65535:
        raise InvalidArgument(f"port out of range: {port}")
    return host, port


def default_server() -> str:
    return os.getenv(SERVER_ENV, "").strip() or DEFAULT_SERVER


def network_time(server: str | None = None, timeout: float = DEFAULT_TIMEOUT) -> datetime:
    host, port = parse_server(server or default_server())
    with Client(timeout=timeout) as client:
        offset = client.get_offset(host, port)
        now = client.clock() + offset
    return datetime.fromtimestamp(now / 1000, tz=timezone.utc)
