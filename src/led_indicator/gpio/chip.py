"""
Real GPIO line via libgpiod (v2 Python bindings).

Requests a single line as output with initial value low. Only usable on
a machine with a GPIO character device (/dev/gpiochipN) and the gpiod
package installed.
"""

import logging

from ..errors import HardwareError
from .base import LineHandle

try:
    import gpiod
    from gpiod.line import Direction, Value
    HAS_GPIOD = True
except ImportError:
    HAS_GPIOD = False
    gpiod = None
    Direction = Value = None

logger = logging.getLogger(__name__)


def chip_path(chipname: str) -> str:
    """Resolve a bare chip name (gpiochip0) to its device path."""
    if chipname.startswith("/"):
        return chipname
    return f"/dev/{chipname}"


class GpiodLine(LineHandle):
    """One output line requested through libgpiod."""

    def __init__(self, chipname: str = "gpiochip0", line: int = 13, consumer: str = "led-indicator"):
        self.chipname = chipname
        self.line = line
        self._released = False
        if not HAS_GPIOD:
            raise HardwareError("gpiod library not available (pip install gpiod)")
        path = chip_path(chipname)
        try:
            self._request = gpiod.request_lines(
                path,
                consumer=consumer,
                config={
                    line: gpiod.LineSettings(
                        direction=Direction.OUTPUT,
                        output_value=Value.INACTIVE,
                    )
                },
            )
        except (OSError, ValueError) as e:
            raise HardwareError(f"cannot request GPIO line {line} on {path}: {e}") from e
        logger.debug("requested %s line %d as %s", path, line, consumer)

    def get_value(self) -> bool:
        try:
            return self._request.get_value(self.line) == Value.ACTIVE
        except OSError as e:
            raise HardwareError(f"GPIO read failed on {self.chipname}:{self.line}: {e}") from e

    def set_value(self, level: bool) -> None:
        try:
            self._request.set_value(self.line, Value.ACTIVE if level else Value.INACTIVE)
        except OSError as e:
            raise HardwareError(f"GPIO write failed on {self.chipname}:{self.line}: {e}") from e

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._request.release()

    def is_released(self) -> bool:
        return self._released
