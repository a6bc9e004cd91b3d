"""
Termination signals as a pollable source.

SIGINT/SIGTERM are not acted on inside a handler. The interpreter writes
each signal number to a socket (``signal.set_wakeup_fd``); the event loop
polls that socket next to the D-Bus connection and decides what to do
at its own pace. The Python-level handler does nothing, it only keeps
the default action (terminate / KeyboardInterrupt) from firing.
"""

import signal
import socket
from typing import Dict, Iterable, List

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _deferred(signum, frame):
    pass


class TerminationSignals:
    """
    Route termination signals to a socket the loop can select on.

    Must be created on the main thread (a CPython restriction on
    ``signal.signal`` and ``set_wakeup_fd``).
    """

    def __init__(self, signals: Iterable[int] = TERMINATION_SIGNALS):
        self._rsock, self._wsock = socket.socketpair()
        self._rsock.setblocking(False)
        self._wsock.setblocking(False)
        self._previous_handlers: Dict[int, object] = {}
        self._closed = False
        try:
            self._previous_wakeup_fd = signal.set_wakeup_fd(
                self._wsock.fileno(), warn_on_full_buffer=False
            )
            for signum in signals:
                self._previous_handlers[signum] = signal.signal(signum, _deferred)
        except (ValueError, OSError):
            self.close()
            raise

    def fileno(self) -> int:
        return self._rsock.fileno()

    def drain(self) -> List[int]:
        """Signal numbers received since the last drain (empty if none)."""
        received: List[int] = []
        while True:
            try:
                data = self._rsock.recv(64)
            except (BlockingIOError, InterruptedError):
                break
            if not data:
                break
            received.extend(data)
        return received

    def close(self) -> None:
        """Restore previous handlers and wakeup fd. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for signum, handler in self._previous_handlers.items():
            # None means the handler was installed outside Python
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
        if hasattr(self, "_previous_wakeup_fd"):
            signal.set_wakeup_fd(self._previous_wakeup_fd)
        self._rsock.close()
        self._wsock.close()
