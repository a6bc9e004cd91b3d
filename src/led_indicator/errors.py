"""
Error taxonomy - what failed, for reporting.

The daemon does not retry. Failures either stay at the control boundary
(an unknown action makes ``set`` return False) or propagate to the CLI,
which prints a categorized message and exits non-zero. Restarting is
the service supervisor's job.
"""

from enum import Enum


class ErrorType(Enum):
    """Classification of error types."""
    HARDWARE = "hardware"  # GPIO chip/line
    IPC = "ipc"            # D-Bus connection, name, call
    CONFIG = "config"      # Config file or values
    UNKNOWN = "unknown"


class LedIndicatorError(Exception):
    """Base class for led-indicator failures."""
    error_type: ErrorType = ErrorType.UNKNOWN


class HardwareError(LedIndicatorError):
    """GPIO line could not be requested, read, or written."""
    error_type = ErrorType.HARDWARE


class ControlChannelError(LedIndicatorError):
    """D-Bus connection, name claim, or method call failed."""
    error_type = ErrorType.IPC


class ConfigError(LedIndicatorError):
    """Configuration could not be read or is invalid."""
    error_type = ErrorType.CONFIG


def classify_error(error: BaseException) -> ErrorType:
    """
    Classify an exception into an error type.

    Our own exceptions carry their type. Anything else (a raw OSError
    from a driver, a jeepney error) falls back to keyword matching on
    the message and the exception's class name.
    """
    if isinstance(error, LedIndicatorError):
        return error.error_type

    error_str = str(error).lower()
    error_name = type(error).__name__.lower()

    if any(x in error_str for x in ["gpio", "gpiochip", "line request"]):
        return ErrorType.HARDWARE

    if any(x in error_name for x in ["dbus", "authentication"]):
        return ErrorType.IPC
    if any(x in error_str for x in ["dbus", "d-bus", "bus name", "connection"]):
        return ErrorType.IPC

    if any(x in error_str for x in ["config", "yaml"]):
        return ErrorType.CONFIG

    return ErrorType.UNKNOWN
