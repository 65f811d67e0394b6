"""Background receive loop that decodes SNTP replies and hands them to a callback."""

from __future__ import annotations

import logging
import selectors
import socket
import threading
from typing import Callable

from . import codec
from .errors import IllegalState, InvalidArgument, MalformedPacket
from .message import MAXIMUM_LENGTH, Message
from .timestamp import current_millis

logger = logging.getLogger(__name__)

THREAD_NAME = "sntp-listener"
POLL_INTERVAL = 0.5  # Seconds between checks of the stop flag while idle
ERROR_BACKOFF = 0.1  # Pause after an unexpected receive error

MessageCallback = Callable[[Message, int], None]



class Listener:
    """Receives datagrams on ``sock`` until stopped.

    The owner stops the loop with ``stop()`` and then closes the socket; any
    receive error raised after ``stop()`` is the expected result of that close
    and ends the loop without being logged.
    """

    def __init__(
        self,
        sock: socket.socket,
        on_message: MessageCallback,
        clock: Callable[[], int] = current_millis,
        name: str | None = None,
    ) -> None:
        if sock is None:
            raise InvalidArgument("sock=None")
        if on_message is None:
            raise InvalidArgument("on_message=None")
        self.sock = sock
        self.on_message = on_message
        self.clock = clock
        self._listening = False
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=name or f"{THREAD_NAME}-{sock.getsockname()[1]}",
            daemon=True,
        )

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def thread(self) -> threading.Thread:
        return self._thread

    def start(self) -> None:
        if self._thread.ident is not None:
            raise IllegalState("Listener already started")
        self._listening = True
        self._thread.start()

    def stop(self) -> None:
        self._listening = False
        self._stopped.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.ident is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _receive(self, selector: selectors.BaseSelector) -> tuple[bytes, tuple, int] | None:
        if not selector.select(POLL_INTERVAL):
            return None
        data, addr = self.sock.recvfrom(MAXIMUM_LENGTH)
        return data, addr, self.clock()

    def _run(self) -> None:
        logger.debug("Listener %s started", self._thread.name)
        with selectors.DefaultSelector() as selector:
            try:
                selector.register(self.sock, selectors.EVENT_READ)
            except (OSError, ValueError):
                if self._listening:
                    logger.warning("Socket of %s closed before listening, stopping", self._thread.name)
                    self._listening = False
                return
            self._loop(selector)
        logger.debug("Listener %s ended", self._thread.name)

    def _loop(self, selector: selectors.BaseSelector) -> None:
        while self._listening:
            try:
                received = self._receive(selector)
            except socket.timeout:
                logger.debug("Read timeout on %s while idle", self._thread.name)
                continue
            except (OSError, ValueError):
                if not self._listening:
                    break
                if self.sock.fileno() == -1:
                    logger.warning("Socket of %s closed while listening, stopping", self._thread.name)
                    self._listening = False
                    break
                logger.exception("Error receiving an SNTP message")
                self._stopped.wait(ERROR_BACKOFF)
                continue

            if received is None:
                continue
            data, addr, arrival = received

            try:
                message = codec.decode(data)
            except MalformedPacket as exc:
                if self._listening:
                    logger.warning("Discarding packet from %s: %s", addr[0], exc)
                continue

            try:
                self.on_message(message, arrival)
            except Exception:
                logger.exception("SNTP message callback failed")
