"""
LED Indicator - drive one GPIO LED from a D-Bus control channel

One LED. Three modes: on, off, blink. One polling loop.
"""

__version__ = "0.1.0"

PROGNAME = "led-indicator"

from .blink import expected_level, now_ms
from .state import LedAction, LedState
from .config import (
    GpioConfig,
    BusConfig,
    LoopConfig,
    IndicatorConfig,
    ConfigManager,
)
from .errors import (
    ErrorType,
    LedIndicatorError,
    HardwareError,
    ControlChannelError,
    ConfigError,
    classify_error,
)
from .gpio import LineHandle, MockLine, get_line
from .service import IndicatorService

__all__ = [
    "PROGNAME",
    "expected_level",
    "now_ms",
    "LedAction",
    "LedState",
    "GpioConfig",
    "BusConfig",
    "LoopConfig",
    "IndicatorConfig",
    "ConfigManager",
    "ErrorType",
    "LedIndicatorError",
    "HardwareError",
    "ControlChannelError",
    "ConfigError",
    "classify_error",
    "LineHandle",
    "MockLine",
    "get_line",
    "IndicatorService",
]
