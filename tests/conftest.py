"""
Shared test fixtures for led-indicator.

Nothing here needs GPIO hardware or a running bus: MockLine stands in for
the line, FakeEndpoint feeds real jeepney messages through the real
dispatcher, and FakeSignals is a socket the test writes signal numbers to.
Both fakes are backed by socket pairs so the service's selector sees real
readiness.
"""

import signal
import socket
from collections import deque

import pytest
from jeepney.wrappers import DBusAddress, new_method_call

from led_indicator.control import ControlDispatcher, make_handlers
from led_indicator.gpio import MockLine
from led_indicator.service import IndicatorService
from led_indicator.state import LedState

SERVICE_NAME = "com.walbrix.LedIndicatorService"
OBJECT_PATH = "/com/walbrix/LedIndicator"
INTERFACE_NAME = "com.walbrix.LedIndicator"

ADDRESS = DBusAddress(OBJECT_PATH, bus_name=SERVICE_NAME, interface=INTERFACE_NAME)


def method_call(method: str, signature=None, body=(), address: DBusAddress = ADDRESS):
    """Build a D-Bus method call message as a client would send it."""
    return new_method_call(address, method, signature, body)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeEndpoint:
    """Control endpoint without a bus. Replies are collected in ``replies``."""

    def __init__(self, state: LedState):
        self.dispatcher = ControlDispatcher(make_handlers(state), OBJECT_PATH, INTERFACE_NAME)
        self._rsock, self._wsock = socket.socketpair()
        self._rsock.setblocking(False)
        self._pending = deque()
        self.replies = []
        self.released = False
        self.closed = False

    def fileno(self) -> int:
        return self._rsock.fileno()

    def submit(self, msg):
        self._pending.append(msg)
        self._wsock.send(b"\0")
        return msg

    def call(self, method: str, signature=None, body=()):
        return self.submit(method_call(method, signature, body))

    def process_pending(self) -> bool:
        try:
            while self._rsock.recv(4096):
                pass
        except BlockingIOError:
            pass
        try:
            msg = self._pending.popleft()
        except IndexError:
            return False
        reply = self.dispatcher.dispatch(msg)
        if reply is not None:
            self.replies.append(reply)
        return True

    def release(self):
        self.released = True
        self.close()

    def close(self):
        if not self.closed:
            self.closed = True
            self._rsock.close()
            self._wsock.close()


class FakeSignals:
    """Termination signal source the test triggers with ``deliver()``."""

    def __init__(self):
        self._rsock, self._wsock = socket.socketpair()
        self._rsock.setblocking(False)
        self.closed = False

    def fileno(self) -> int:
        return self._rsock.fileno()

    def deliver(self, signum: int = signal.SIGTERM):
        self._wsock.send(bytes([signum]))

    def drain(self):
        received = []
        try:
            while True:
                data = self._rsock.recv(64)
                if not data:
                    break
                received.extend(data)
        except BlockingIOError:
            pass
        return received

    def close(self):
        if not self.closed:
            self.closed = True
            self._rsock.close()
            self._wsock.close()


class ScriptedClock:
    """Returns the given epoch-millisecond values in order, then repeats the last."""

    def __init__(self, values):
        self._values = list(values)
        self._index = 0

    def __call__(self) -> int:
        value = self._values[min(self._index, len(self._values) - 1)]
        self._index += 1
        return value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def state():
    """LedState with the stock 500 ms blink interval, starting OFF."""
    return LedState()


@pytest.fixture
def line():
    return MockLine()


@pytest.fixture
def endpoint(state):
    ep = FakeEndpoint(state)
    yield ep
    ep.close()


@pytest.fixture
def signals():
    sig = FakeSignals()
    yield sig
    sig.close()


@pytest.fixture
def make_service(line, endpoint, signals, state):
    """Factory for an IndicatorService wired to the fakes above."""

    def factory(**kwargs):
        kwargs.setdefault("poll_timeout", 0.01)
        return IndicatorService(line, endpoint, signals, state, **kwargs)

    return factory
