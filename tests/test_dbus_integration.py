"""
Round trip over a real bus: a private dbus-daemon, the daemon's endpoint
and loop, and the client the CLI uses.

Skipped when dbus-daemon is not installed.
"""

import shutil
import signal
import subprocess
import threading
import time

import pytest

from conftest import FakeSignals, INTERFACE_NAME, OBJECT_PATH, SERVICE_NAME
from led_indicator import cli
from led_indicator import config as config_module
from led_indicator.control import ControlClient, DBusEndpoint
from led_indicator.errors import ControlChannelError
from led_indicator.gpio import MockLine
from led_indicator.service import IndicatorService
from led_indicator.state import LedState

pytestmark = pytest.mark.skipif(shutil.which("dbus-daemon") is None, reason="dbus-daemon not installed")


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def session_bus(monkeypatch):
    """Start a throwaway session bus and point jeepney at it."""
    proc = subprocess.Popen(
        ["dbus-daemon", "--session", "--nofork", "--print-address"],
        stdout=subprocess.PIPE,
        text=True,
    )
    try:
        address = proc.stdout.readline().strip()
        if not address:
            pytest.skip("dbus-daemon did not report an address")
        monkeypatch.setenv("DBUS_SESSION_BUS_ADDRESS", address)
        yield address
    finally:
        proc.terminate()
        proc.wait(timeout=5)
        proc.stdout.close()


@pytest.fixture
def running_service(session_bus):
    """Endpoint plus loop on a background thread; stopped with SIGTERM."""
    state = LedState()
    line = MockLine()
    signals = FakeSignals()
    endpoint = DBusEndpoint.open(state, SERVICE_NAME, OBJECT_PATH, INTERFACE_NAME, bus="session")
    service = IndicatorService(line, endpoint, signals, state, poll_timeout=0.05)
    thread = threading.Thread(target=service.run, daemon=True)
    thread.start()
    try:
        yield service, signals, thread
    finally:
        if thread.is_alive():
            signals.deliver(signal.SIGTERM)
            thread.join(timeout=2.0)
        endpoint.close()
        signals.close()


@pytest.fixture
def client(session_bus):
    return ControlClient(SERVICE_NAME, OBJECT_PATH, INTERFACE_NAME, bus="session", timeout=2.0)


class TestSessionBusRoundTrip:

    def test_set_and_get(self, running_service, client):
        service, _, _ = running_service
        assert client.get() == "off"
        assert client.set("blink") is True
        assert client.set("ON") is False
        assert client.get() == "blink"
        assert client.set("on") is True
        assert client.get() == "on"
        assert wait_for(lambda: service.line.value is True)

    def test_unknown_method_is_error(self, running_service, client):
        with pytest.raises(ControlChannelError, match="UnknownMethod"):
            client._call("toggle")

    def test_shutdown_releases_line_and_name(self, running_service, client):
        service, signals, thread = running_service
        assert client.set("on") is True
        signals.deliver(signal.SIGTERM)
        thread.join(timeout=2.0)
        assert not thread.is_alive()
        assert service.line.value is False
        assert service.line.is_released()
        with pytest.raises(ControlChannelError):
            client.get()

    def test_blink_observed_over_bus(self, running_service, client):
        service, _, _ = running_service
        assert client.set("blink") is True
        samples = []
        for _ in range(13):
            samples.append(service.line.value)
            time.sleep(0.1)
        changes = sum(1 for a, b in zip(samples, samples[1:]) if a != b)
        assert changes >= 2

    def test_cli_commands(self, running_service, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
        assert cli.main(["--bus", "session", "set", "blink"]) == 0
        assert capsys.readouterr().out.strip() == "success"
        assert cli.main(["--bus", "session", "set", "bogus"]) == 1
        assert capsys.readouterr().out.strip() == "error"
        assert cli.main(["--bus", "session", "get"]) == 0
        assert capsys.readouterr().out.strip() == "blink"
