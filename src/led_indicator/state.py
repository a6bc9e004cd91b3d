"""LED state machine - the requested mode and the level it implies."""

from enum import Enum
from typing import Optional

from .blink import DEFAULT_BLINK_INTERVAL_MS, expected_level


class LedAction(Enum):
    """Requested LED mode. Values are the labels used on the bus."""
    ON = "on"
    OFF = "off"
    BLINK = "blink"

    @classmethod
    def parse(cls, label: str) -> Optional["LedAction"]:
        """Exact, case-sensitive label lookup. None for anything else."""
        if not isinstance(label, str):
            return None
        try:
            return cls(label)
        except ValueError:
            return None


class LedState:
    """
    Owns the current LedAction.

    The daemon creates one of these and hands it to the control handlers;
    all reads and writes happen on the loop's thread.
    """

    def __init__(self, blink_interval_ms: int = DEFAULT_BLINK_INTERVAL_MS):
        if blink_interval_ms <= 0:
            raise ValueError(f"blink_interval_ms must be positive, got {blink_interval_ms}")
        self.blink_interval_ms = blink_interval_ms
        self._action = LedAction.OFF

    @property
    def action(self) -> LedAction:
        return self._action

    def set_action(self, action: LedAction) -> None:
        self._action = LedAction(action)

    def get_action(self) -> LedAction:
        return self._action

    def reset(self) -> None:
        self._action = LedAction.OFF

    def expected_level(self, now: int) -> bool:
        """Level for epoch milliseconds ``now``."""
        if self._action is LedAction.ON:
            return True
        if self._action is LedAction.OFF:
            return False
        return expected_level(now, self.blink_interval_ms)

    def __repr__(self) -> str:
        return f"LedState(action={self._action.value!r}, blink_interval_ms={self.blink_interval_ms})"
