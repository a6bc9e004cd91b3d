"""GPIO line abstraction - libgpiod on the device, mock elsewhere."""

from .base import LineHandle
from .mock import MockLine
from ..errors import ConfigError


def get_line(
    backend: str = "chip",
    chipname: str = "gpiochip0",
    line: int = 13,
    consumer: str = "led-indicator",
) -> LineHandle:
    """Request the LED line from the chosen backend. The line starts low."""
    if backend == "chip":
        from .chip import GpiodLine
        return GpiodLine(chipname, line, consumer)
    if backend == "mock":
        return MockLine(chipname, line)
    raise ConfigError(f"unknown GPIO backend: {backend}")


__all__ = ["LineHandle", "MockLine", "get_line"]
