"""Blink clock - square wave phase-locked to wall-clock time.

The phase comes from absolute epoch milliseconds, not from daemon start,
so a restarted daemon (or a second one) blinks in step with the first.
Changing the interval shifts the phase abruptly.
"""

import time

DEFAULT_BLINK_INTERVAL_MS = 500


def now_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def expected_level(now: int, interval_ms: int = DEFAULT_BLINK_INTERVAL_MS) -> bool:
    """
    Level the LED should show at ``now`` while blinking.

    Args:
        now: Epoch milliseconds
        interval_ms: Length of each on/off half-period

    Returns:
        True in even-numbered interval buckets, False in odd ones
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")
    return (now // interval_ms) % 2 == 0
