"""Outbound half of an SNTP exchange: one encoded message, one datagram."""

from __future__ import annotations

import socket

from . import codec
from .errors import InvalidArgument, NetworkError
from .message import Message


class Sender:
    def __init__(self, sock: socket.socket) -> None:
        if sock is None:
            raise InvalidArgument("sock=None")
        self.sock = sock

    def send(self, message: Message, address: str, port: int) -> None:
        if message is None:
            raise InvalidArgument("message=None")
        if not address:
            raise InvalidArgument("address is required")
        if not 1 <= port <= 65535:
            raise InvalidArgument(f"port out of range: {port}")

        data = codec.encode(message)
        try:
            self.sock.sendto(data, (address, port))
        except OSError as exc:
            raise NetworkError(f"Failed to send SNTP request to {address}:{port}: {exc}") from exc
