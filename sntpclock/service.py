"""Keeps a Client offset fresh on a fixed interval and serves network time from it."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from .client import DEFAULT_TIMEOUT, Client
from .errors import IllegalState, InvalidArgument, NotSynchronized, SntpError
from .message import SNTP_PORT

logger = logging.getLogger(__name__)


class _Schedule:
    """A repeating tick on its own daemon thread, cancelled through an Event."""

    def __init__(self, interval: float, tick) -> None:
        self.interval = interval
        self.tick = tick
        self.cancelled = threading.Event()
        self.thread = threading.Thread(target=self._run, name="sntp-service", daemon=True)

    def start(self) -> None:
        self.thread.start()

    def cancel(self) -> None:
        self.cancelled.set()

    def _run(self) -> None:
        while not self.cancelled.wait(self.interval):
            self.tick()


class Service:
    def __init__(
        self,
        host: str | None = None,
        port: int = SNTP_PORT,
        interval: float = 0.0,
        client: Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if interval < 0:
            raise InvalidArgument(f"interval<0: {interval}")
        self.host: str | None = None
        self.port = SNTP_PORT
        if host is not None:
            self.set_server(host, port)
        self.client = client if client is not None else Client(timeout=timeout)
        self.interval = 0.0
        self.last_sync: int | None = None
        self.last_error: Exception | None = None
        self._offset: int | None = None
        self._schedule: _Schedule | None = None
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._closed = False
        self.set_interval(interval)

    def __enter__(self) -> Service:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_synchronized(self) -> bool:
        return self._offset is not None

    @property
    def offset(self) -> int:
        offset = self._offset
        if offset is None:
            raise NotSynchronized("Not synchronized")
        return offset

    def set_server(self, host: str, port: int = SNTP_PORT) -> None:
        if not host:
            raise InvalidArgument("host is required")
        if not 1 <= port <= 65535:
            raise InvalidArgument(f"port out of range: {port}")
        self.host = host
        self.port = port

    def set_interval(self, interval: float) -> None:
        """Replace the repeating schedule; an interval of 0 leaves only manual synchronization."""
        if interval < 0:
            raise InvalidArgument(f"interval<0: {interval}")
        with self._state_lock:
            if self._closed:
                raise IllegalState("Service closed")
            if self._schedule is not None:
                self._schedule.cancel()
                self._schedule = None
            self.interval = interval
            if interval > 0:
                self._schedule = _Schedule(interval, self._tick)
                self._schedule.start()

    def synchronize(self) -> int:
        if self._closed:
            raise IllegalState("Service closed")
        if self.host is None:
            raise IllegalState("No SNTP server configured")
        with self._tick_lock:
            offset = self.client.get_offset(self.host, self.port)
            self._offset = offset
            self.last_sync = self.client.clock()
            self.last_error = None
        logger.debug("Synchronized with %s:%d, offset=%d ms", self.host, self.port, offset)
        return offset

    def _tick(self) -> None:
        if self._closed:
            return
        try:
            self.synchronize()
        except (SntpError, OSError) as exc:
            self.last_error = exc
            if not self._closed:
                logger.warning("Error synchronizing with %s:%s: %s", self.host, self.port, exc)

    def get_time(self) -> int:
        if self._closed:
            raise IllegalState("Service closed")
        return self.client.clock() + self.offset

    def get_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.get_time() / 1000, tz=timezone.utc)

    def close(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            if self._schedule is not None:
                self._schedule.cancel()
                self._schedule = None
        self.client.close()
