"""
Base GPIO line interface.

One requested output line. Everything the event loop needs from the
hardware goes through these three calls.
"""

from abc import ABC, abstractmethod


class LineHandle(ABC):
    """Abstract output line - implemented by libgpiod and mock backends."""

    @abstractmethod
    def get_value(self) -> bool:
        """Current output level."""
        pass

    @abstractmethod
    def set_value(self, level: bool) -> None:
        """Drive the line high (True) or low (False)."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Give the line back to the kernel. Safe to call more than once."""
        pass

    def is_released(self) -> bool:
        return False
