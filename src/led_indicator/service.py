"""
Indicator service - the daemon's single polling loop.

Each iteration:
1. Wait (bounded by poll_timeout) for the control endpoint or the
   termination signal source to become readable
2. If a termination signal arrived, note it - the iteration still finishes
3. Drain every pending control call
4. Work out the level the LED should have right now
5. Write the line only if its current value differs

No threads and no locks: the control handlers run inside step 3, on this
loop, so ``set`` always lands before the next level computation. The
poll timeout bounds both blink jitter and shutdown latency.

Any failure in select, GPIO, or D-Bus propagates out of ``run()``. There
is no retry here; the service supervisor restarts the process.
"""

import selectors
import signal
from typing import Callable, List, Optional, Protocol

from .blink import now_ms
from .gpio.base import LineHandle
from .state import LedState

DEFAULT_POLL_TIMEOUT = 0.1  # seconds

_CONTROL = "control"
_SIGNALS = "signals"


class ControlSource(Protocol):
    def fileno(self) -> int: ...
    def process_pending(self) -> bool: ...
    def release(self) -> None: ...


class SignalSource(Protocol):
    def fileno(self) -> int: ...
    def drain(self) -> List[int]: ...
    def close(self) -> None: ...


def _signal_names(signums: List[int]) -> str:
    names = []
    for signum in signums:
        try:
            names.append(signal.Signals(signum).name)
        except ValueError:
            names.append(str(signum))
    return ", ".join(names)


class IndicatorService:
    """
    Owns the line, the control endpoint, and the signal source once running.

    Args:
        line: Requested output line, already low
        endpoint: Control endpoint with its bus name claimed
        signals: Pollable termination signal source
        state: LED state shared with the endpoint's handlers
        poll_timeout: Longest wait per iteration, in seconds
        clock: Epoch-milliseconds source (tests pass a scripted one)
    """

    def __init__(
        self,
        line: LineHandle,
        endpoint: ControlSource,
        signals: SignalSource,
        state: Optional[LedState] = None,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        clock: Callable[[], int] = now_ms,
    ):
        self.line = line
        self.endpoint = endpoint
        self.signals = signals
        self.state = state if state is not None else LedState()
        self.poll_timeout = poll_timeout
        self._clock = clock
        self.exit_requested = False
        self.physical_level = line.get_value()
        self.iterations = 0
        self._selector = selectors.DefaultSelector()
        self._selector.register(endpoint.fileno(), selectors.EVENT_READ, _CONTROL)
        self._selector.register(signals.fileno(), selectors.EVENT_READ, _SIGNALS)

    def step(self) -> bool:
        """Run one loop iteration. Returns False once termination was requested."""
        for key, _ in self._selector.select(self.poll_timeout):
            if key.data == _SIGNALS:
                received = self.signals.drain()
                if received:
                    print(f"Received {_signal_names(received)}, shutting down", flush=True)
                    self.exit_requested = True

        while self.endpoint.process_pending():
            pass

        self.apply(self.state.expected_level(self._clock()))
        self.iterations += 1
        return not self.exit_requested

    def apply(self, level: bool) -> bool:
        """Write ``level`` if the line differs from it. Returns True if written."""
        if self.line.get_value() == level:
            return False
        self.line.set_value(level)
        self.physical_level = level
        return True

    def run(self) -> int:
        """Loop until a termination signal, then shut down. Returns exit status."""
        while self.step():
            pass
        self.shutdown()
        return 0

    def shutdown(self) -> None:
        """LED off, line released, bus name withdrawn."""
        self._selector.close()
        self.signals.close()
        self.state.reset()
        self.line.set_value(False)
        self.physical_level = False
        self.line.release()
        self.endpoint.release()
        print("Exit.", flush=True)
