"""
Configuration - where the LED lives and how the daemon is reached.

Every value has a built-in default matching a stock install (GPIO13 on
gpiochip0, the com.walbrix.LedIndicator* names on the system bus). A
YAML or JSON file can override any of them, and CLI flags override the
file.
"""

import json
import yaml
from dataclasses import dataclass, field, asdict, fields, replace
from pathlib import Path
from typing import Tuple, Optional, Dict, Any

from .blink import DEFAULT_BLINK_INTERVAL_MS
from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("/etc/led-indicator.yaml")

BUSES = ("system", "session")
BACKENDS = ("chip", "mock")


@dataclass
class GpioConfig:
    """Which line drives the LED."""
    chipname: str = "gpiochip0"
    line: int = 13  # GPIO13
    consumer: str = "led-indicator"  # Label shown by gpioinfo
    backend: str = "chip"  # "chip" (libgpiod) or "mock" (in-memory)


@dataclass
class BusConfig:
    """D-Bus naming for the control endpoint."""
    service_name: str = "com.walbrix.LedIndicatorService"
    object_path: str = "/com/walbrix/LedIndicator"
    interface_name: str = "com.walbrix.LedIndicator"
    bus: str = "system"
    call_timeout: float = 5.0  # seconds, client side


@dataclass
class LoopConfig:
    """Event loop timing."""
    poll_timeout: float = 0.1  # seconds; bounds blink latency and shutdown latency
    blink_interval_ms: int = DEFAULT_BLINK_INTERVAL_MS


@dataclass
class IndicatorConfig:
    """Complete configuration for led-indicator."""
    gpio: GpioConfig = field(default_factory=GpioConfig)
    bus: BusConfig = field(default_factory=BusConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "gpio": asdict(self.gpio),
            "bus": asdict(self.bus),
            "loop": asdict(self.loop),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndicatorConfig":
        """Create from dictionary. Unknown sections or keys raise ConfigError."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a mapping, got {type(data).__name__}")
        unknown = set(data) - {"gpio", "bus", "loop"}
        if unknown:
            raise ConfigError(f"unknown config section(s): {', '.join(sorted(unknown))}")
        try:
            return cls(
                gpio=GpioConfig(**(data.get("gpio") or {})),
                bus=BusConfig(**(data.get("bus") or {})),
                loop=LoopConfig(**(data.get("loop") or {})),
            )
        except TypeError as e:
            raise ConfigError(f"invalid config key: {e}") from e

    def validate(self) -> Tuple[bool, Optional[str]]:
        """Validate entire configuration."""
        if not self.gpio.chipname:
            return False, "gpio.chipname must not be empty"

        if not isinstance(self.gpio.line, int) or self.gpio.line < 0:
            return False, "gpio.line must be a non-negative integer"

        if self.gpio.backend not in BACKENDS:
            return False, f"gpio.backend must be one of {', '.join(BACKENDS)}"

        if not self.bus.service_name or not self.bus.interface_name:
            return False, "bus.service_name and bus.interface_name must not be empty"

        if not self.bus.object_path.startswith("/"):
            return False, "bus.object_path must start with '/'"

        if self.bus.bus not in BUSES:
            return False, f"bus.bus must be one of {', '.join(BUSES)}"

        if self.bus.call_timeout <= 0:
            return False, "bus.call_timeout must be positive"

        if self.loop.blink_interval_ms <= 0:
            return False, "loop.blink_interval_ms must be positive"

        if self.loop.poll_timeout <= 0:
            return False, "loop.poll_timeout must be positive"

        # A longer poll would skip whole blink half-periods
        if self.loop.poll_timeout * 1000 > self.loop.blink_interval_ms:
            return False, "loop.poll_timeout must not exceed loop.blink_interval_ms"

        return True, None

    def with_overrides(self, **overrides: Any) -> "IndicatorConfig":
        """
        Return a copy with the given fields replaced.

        Keys are field names from any section (``chipname``, ``line``,
        ``service_name``, ``bus``, ...). None values are ignored so argparse
        defaults can be passed straight through.
        """
        sections = {"gpio": self.gpio, "bus": self.bus, "loop": self.loop}
        changes: Dict[str, Dict[str, Any]] = {name: {} for name in sections}
        for key, value in overrides.items():
            if value is None:
                continue
            for name, section in sections.items():
                if key in {f.name for f in fields(section)}:
                    changes[name][key] = value
                    break
            else:
                raise ConfigError(f"unknown config field: {key}")
        return IndicatorConfig(
            gpio=replace(self.gpio, **changes["gpio"]),
            bus=replace(self.bus, **changes["bus"]),
            loop=replace(self.loop, **changes["loop"]),
        )


class ConfigManager:
    """Loads configuration from a YAML or JSON file, or returns defaults."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to config file. When None, DEFAULT_CONFIG_PATH is
                used if it exists, otherwise built-in defaults.
        """
        self.explicit = config_path is not None
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH
        self.config_path = Path(config_path)
        self._config: Optional[IndicatorConfig] = None

    def load(self, force_reload: bool = False) -> IndicatorConfig:
        """Load configuration from file or return defaults."""
        if self._config is not None and not force_reload:
            return self._config

        if not self.config_path.exists():
            if self.explicit:
                raise ConfigError(f"config file not found: {self.config_path}")
            # No config file - use defaults
            self._config = IndicatorConfig()
            return self._config

        try:
            with open(self.config_path, "r") as f:
                if self.config_path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read config {self.config_path}: {e}") from e

        config = IndicatorConfig.from_dict(data)
        valid, error = config.validate()
        if not valid:
            raise ConfigError(f"invalid config {self.config_path}: {error}")

        self._config = config
        return self._config
