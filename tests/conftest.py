from __future__ import annotations

import socket
import threading
from typing import Callable

import pytest

from sntpclock import codec
from sntpclock.message import MODE_SERVER, Message
from sntpclock.timestamp import Timestamp


class SteppingClock:
    """Millisecond clock returning the given readings in turn, then repeating the last one."""

    def __init__(self, *readings: int) -> None:
        self.readings = list(readings)
        self.lock = threading.Lock()

    def __call__(self) -> int:
        with self.lock:
            if len(self.readings) > 1:
                return self.readings.pop(0)
            return self.readings[0]


def server_reply(request: Message, receive_ms: int, transmit_ms: int, stratum: int = 2) -> bytes:
    reply = Message(
        mode=MODE_SERVER,
        stratum=stratum,
        reference_identifier=bytes([192, 0, 2, 1]),
        originate_timestamp=request.transmit_timestamp,
        receive_timestamp=Timestamp.from_local_millis(receive_ms),
        transmit_timestamp=Timestamp.from_local_millis(transmit_ms),
    )
    return codec.encode(reply)


class FakeServer:
    """Loopback UDP responder; ``respond`` maps a decoded request to the datagrams sent back."""

    def __init__(self, respond: Callable[[Message], list[bytes]]) -> None:
        self.respond = respond
        self.requests: list[Message] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.1)
        self.host, self.port = self.sock.getsockname()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> FakeServer:
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(2)
        self.sock.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                break
            request = codec.decode(data)
            self.requests.append(request)
            for datagram in self.respond(request):
                self.sock.sendto(datagram, addr)


def offset_responder(offset_ms: int) -> Callable[[Message], list[bytes]]:
    def respond(request: Message) -> list[bytes]:
        now = request.transmit_timestamp.to_local_millis() + offset_ms
        return [server_reply(request, now, now)]

    return respond


@pytest.fixture
def make_server():
    servers: list[FakeServer] = []

    def factory(respond: Callable[[Message], list[bytes]]) -> FakeServer:
        server = FakeServer(respond).start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def silent_server(make_server):
    return make_server(lambda _request: [])
