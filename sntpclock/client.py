"""SNTP client: one request/response exchange at a time over a private UDP socket."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Callable

from .errors import IllegalState, InvalidArgument, NetworkError, Timeout
from .listener import POLL_INTERVAL, Listener
from .message import SNTP_PORT, Message
from .sender import Sender
from .timestamp import Timestamp, current_millis

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # Seconds


@dataclass
class SntpResult:
    host: str
    port: int
    offset_ms: int
    delay_ms: int
    stratum: int
    leap: int
    version: int
    reference_id: bytes


def compute_offset(t1: int, t2: int, t3: int, t4: int) -> int:
    total = (t2 - t1) + (t3 - t4)
    # Halve toward zero, not toward negative infinity.
    return -(-total // 2) if total < 0 else total // 2


def compute_delay(t1: int, t2: int, t3: int, t4: int) -> int:
    return (t4 - t1) - (t3 - t2)


@dataclass
class _Holder:
    message: Message | None = None
    received_at: int = 0
    expected: Timestamp | None = None

    def reset(self, expected: Timestamp | None = None) -> None:
        self.message = None
        self.received_at = 0
        self.expected = expected


class Client:
    """Queries SNTP servers and reports the local clock offset in milliseconds.

    Safe to share between threads, but exchanges are serialized: a second
    caller waits until the first one has its answer or has timed out.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, clock: Callable[[], int] = current_millis) -> None:
        if timeout < 0:
            raise InvalidArgument(f"timeout<0: {timeout}")
        self.timeout = timeout
        self.clock = clock

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            if timeout > 0:
                self.sock.settimeout(timeout)
            self.sock.bind(("0.0.0.0", 0))
        except OSError as exc:
            self.sock.close()
            raise NetworkError(f"Cannot open SNTP client socket: {exc}") from exc

        self._sender = Sender(self.sock)
        self._holder = _Holder()
        self._condition = threading.Condition()
        self._exchange_lock = threading.Lock()
        self._closed = False

        self.listener = Listener(self.sock, self._on_message, clock=clock)
        self.listener.start()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"port={self.sock.getsockname()[1]}"
        return f"<Client {state} timeout={self.timeout}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.listener.stop()
        self.sock.close()
        self.listener.join(POLL_INTERVAL * 2)

    def get_offset(self, address: str, port: int = SNTP_PORT) -> int:
        return self.query(address, port).offset_ms

    def query(self, address: str, port: int = SNTP_PORT) -> SntpResult:
        if not address:
            raise InvalidArgument("address is required")
        if self._closed or not self.listener.is_listening:
            raise IllegalState("Client closed")

        try:
            resolved = socket.gethostbyname(address)
        except OSError as exc:
            raise NetworkError(f"Cannot resolve {address}: {exc}") from exc

        with self._exchange_lock:
            request = Message(transmit_timestamp=Timestamp.now(self.clock))
            with self._condition:
                self._holder.reset(expected=request.transmit_timestamp)
            self._sender.send(request, resolved, port)

            with self._condition:
                delivered = self._condition.wait_for(
                    lambda: self._holder.message is not None,
                    timeout=self.timeout or DEFAULT_TIMEOUT,
                )
                reply = self._holder.message
                t4 = self._holder.received_at
                self._holder.reset()

        if not delivered or reply is None:
            raise Timeout(f"Timed out after {self.timeout}s while querying {address}:{port}")

        t1 = reply.originate_timestamp.to_local_millis()
        t2 = reply.receive_timestamp.to_local_millis()
        t3 = reply.transmit_timestamp.to_local_millis()

        return SntpResult(
            host=address,
            port=port,
            offset_ms=compute_offset(t1, t2, t3, t4),
            delay_ms=compute_delay(t1, t2, t3, t4),
            stratum=reply.stratum,
            leap=reply.leap_indicator,
            version=reply.version_number,
            reference_id=reply.reference_identifier,
        )

    def _on_message(self, message: Message, received_at: int) -> None:
        with self._condition:
            expected = self._holder.expected
            if expected is None or message.originate_timestamp != expected:
                logger.debug("Discarding reply not matching an outstanding request: %s", message.originate_timestamp)
                return
            if self._holder.message is not None:
                return
            self._holder.message = message
            self._holder.received_at = received_at
            self._condition.notify_all()
