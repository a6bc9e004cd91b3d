"""
Mock GPIO line for development off the Pi.

Keeps the level in memory and records every write, so the daemon can run
on a laptop (``service --backend mock``) and tests can count hardware
writes.
"""

import logging
from typing import List

from ..errors import HardwareError
from .base import LineHandle

logger = logging.getLogger(__name__)


class MockLine(LineHandle):
    """In-memory output line. Starts low, like a freshly requested line."""

    def __init__(self, chipname: str = "gpiochip0", line: int = 13, initial: bool = False):
        self.chipname = chipname
        self.line = line
        self._value = bool(initial)
        self._released = False
        self.writes: List[bool] = []

    def _check(self) -> None:
        if self._released:
            raise HardwareError(f"GPIO line {self.chipname}:{self.line} already released")

    def get_value(self) -> bool:
        self._check()
        return self._value

    def set_value(self, level: bool) -> None:
        self._check()
        self._value = bool(level)
        self.writes.append(self._value)
        logger.debug("mock %s:%d -> %s", self.chipname, self.line, "high" if self._value else "low")

    def release(self) -> None:
        self._released = True

    def is_released(self) -> bool:
        return self._released

    @property
    def value(self) -> bool:
        """Level without the released check - for inspection after shutdown."""
        return self._value
