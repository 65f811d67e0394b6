import threading
import time
from datetime import timezone

import pytest

from conftest import offset_responder
from sntpclock.client import Client
from sntpclock.errors import IllegalState, InvalidArgument, NotSynchronized, Timeout
from sntpclock import service as service_module
from sntpclock.service import Service


def wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_get_time_before_synchronization(silent_server):
    with Service(silent_server.host, silent_server.port, timeout=0.05) as service:
        assert not service.is_synchronized
        with pytest.raises(NotSynchronized):
            service.get_time()
        with pytest.raises(NotSynchronized):
            service.offset


def test_manual_synchronization(make_server):
    server = make_server(offset_responder(5000))
    client = Client(timeout=2, clock=lambda: 1_000_000)
    with Service(server.host, server.port, client=client) as service:
        assert service.synchronize() == 5000
        assert service.offset == 5000
        assert service.get_time() == 1_005_000
        assert service.last_sync == 1_000_000
        moment = service.get_datetime()
        assert moment.tzinfo is timezone.utc
        assert int(moment.timestamp() * 1000) == 1_005_000


def test_periodic_synchronization(make_server):
    server = make_server(offset_responder(100))
    with Service(server.host, server.port, interval=0.05, timeout=2) as service:
        assert service.interval == 0.05
        assert wait_until(lambda: len(server.requests) >= 2)
        assert service.is_synchronized
        assert abs(service.offset - 100) < 500


def test_interval_zero_disables_schedule(make_server):
    server = make_server(offset_responder(0))
    with Service(server.host, server.port, interval=0.05, timeout=2) as service:
        assert wait_until(lambda: len(server.requests) >= 1)
        service.set_interval(0)
        time.sleep(0.1)
        count = len(server.requests)
        time.sleep(0.25)
        assert len(server.requests) == count


def test_failed_tick_keeps_previous_state(silent_server):
    with Service(silent_server.host, silent_server.port, interval=0.05, timeout=0.05) as service:
        assert wait_until(lambda: isinstance(service.last_error, Timeout))
        assert not service.is_synchronized


def test_manual_synchronization_raises(silent_server):
    with Service(silent_server.host, silent_server.port, timeout=0.05) as service:
        with pytest.raises(Timeout):
            service.synchronize()


def test_configuration_is_validated():
    with Service(timeout=0.05) as service:
        with pytest.raises(IllegalState):
            service.synchronize()
        with pytest.raises(InvalidArgument):
            service.set_interval(-1)
        with pytest.raises(InvalidArgument):
            service.set_server("")
        with pytest.raises(InvalidArgument):
            service.set_server("127.0.0.1", 70000)
        service.set_server("127.0.0.1", 1123)
        assert (service.host, service.port) == ("127.0.0.1", 1123)


def test_close_stops_everything(make_server):
    server = make_server(offset_responder(0))
    service = Service(server.host, server.port, interval=0.05, timeout=2)
    assert wait_until(lambda: service.is_synchronized)
    service.close()
    service.close()
    assert service.closed
    assert service.client.closed
    with pytest.raises(IllegalState):
        service.synchronize()
    with pytest.raises(IllegalState):
        service.get_time()
    with pytest.raises(IllegalState):
        service.set_interval(1)


class BlockingClient:
    """Stands in for Client; every query waits for ``release`` and tracks how many run at once."""

    def __init__(self):
        self.release = threading.Event()
        self.entered = threading.Event()
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self.closed = False

    def clock(self):
        return 1_000

    def get_offset(self, host, port):
        with self.lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        self.release.wait(5)
        with self.lock:
            self.active -= 1
        return 42

    def close(self):
        self.closed = True


def test_tick_and_manual_synchronization_never_overlap():
    client = BlockingClient()
    with Service("127.0.0.1", interval=0.02, client=client) as service:
        assert client.entered.wait(2)
        manual = []
        thread = threading.Thread(target=lambda: manual.append(service.synchronize()))
        thread.start()
        time.sleep(0.1)
        assert client.calls == 1
        assert manual == []
        service.set_interval(0)
        client.release.set()
        thread.join(2)
        assert manual == [42]
    assert client.max_active == 1
    assert client.closed


def test_negative_interval_builds_no_client(monkeypatch):
    built = []
    monkeypatch.setattr(service_module, "Client", lambda **kwargs: built.append(kwargs))
    with pytest.raises(InvalidArgument):
        Service("127.0.0.1", interval=-1)
    assert built == []
