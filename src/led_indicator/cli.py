"""
led-indicator command line.

    led-indicator [-s NAME] [-o PATH] [-i IFACE] [-b BUS] [--config FILE] COMMAND

Commands:
    service      run the daemon
    set ACTION   on, off or blink
    get          print the current action
    policyfile   print the D-Bus policy file
    unitfile     print the systemd unit file

Exit status is 0 on success and 1 on any failure, including usage errors
and a ``set`` the daemon refused.
"""

import argparse
import logging
import shutil
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import PROGNAME, __version__
from .artifacts import policy_file, unit_file
from .config import BACKENDS, BUSES, DEFAULT_CONFIG_PATH, ConfigManager, IndicatorConfig
from .control import ControlClient, DBusEndpoint
from .errors import ConfigError, classify_error
from .gpio import get_line
from .service import IndicatorService
from .signals import TerminationSignals
from .state import LedState

# (config field, CLI flag) pairs, in the order they appear on ExecStart
GLOBAL_OPTIONS: Tuple[Tuple[str, str], ...] = (
    ("service_name", "--service-name"),
    ("object_path", "--object-path"),
    ("interface_name", "--interface-name"),
    ("bus", "--bus"),
)
SERVICE_OPTIONS: Tuple[Tuple[str, str], ...] = (
    ("chipname", "--chipname"),
    ("line", "--line"),
    ("backend", "--backend"),
)


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _add_line_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--chipname", help="GPIO chip name (default: gpiochip0)")
    parser.add_argument("-l", "--line", type=int, help="GPIO line number (default: 13)")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog=PROGNAME, description="Drive a GPIO LED from a D-Bus control channel")
    parser.add_argument("-s", "--service-name", help="D-Bus service name")
    parser.add_argument("-o", "--object-path", help="D-Bus object path")
    parser.add_argument("-i", "--interface-name", help="D-Bus interface name")
    parser.add_argument("-b", "--bus", choices=BUSES, help="D-Bus bus to use (default: system)")
    parser.add_argument("--config", type=Path,
                        help=f"Config file, YAML or JSON (default: {DEFAULT_CONFIG_PATH} if present)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    service = sub.add_parser("service", help="Run as D-Bus service")
    _add_line_options(service)
    service.add_argument("--backend", choices=BACKENDS, help="GPIO backend (default: chip)")

    set_command = sub.add_parser("set", help="Set LED state")
    set_command.add_argument("action", help="on, off or blink")

    sub.add_parser("get", help="Get LED state")
    sub.add_parser("policyfile", help="Print D-Bus policy file")

    unitfile = sub.add_parser("unitfile", help="Print systemd unit file")
    _add_line_options(unitfile)

    return parser


def _client(config: IndicatorConfig) -> ControlClient:
    return ControlClient(
        config.bus.service_name,
        config.bus.object_path,
        config.bus.interface_name,
        bus=config.bus.bus,
        timeout=config.bus.call_timeout,
    )


def _executable() -> str:
    """Path systemd should exec to start this program."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0 or argv0.endswith(".py"):
        # Started with python -m
        return f"{sys.executable} -m led_indicator.cli"
    found = shutil.which(argv0)
    return str(Path(found or argv0).resolve())


def _changed_options(pairs: Sequence[Tuple[str, str]], section, base_section) -> List[str]:
    return [
        f"{flag}={getattr(section, name)}"
        for name, flag in pairs
        if getattr(section, name) != getattr(base_section, name)
    ]


def cmd_service(args, config: IndicatorConfig, manager: ConfigManager) -> int:
    bus = config.bus
    print(f"Registering D-Bus service: {bus.service_name} at {bus.object_path} "
          f"with interface: {bus.interface_name}", flush=True)
    state = LedState(config.loop.blink_interval_ms)

    # Unwinds whatever was acquired if a later step fails
    with ExitStack() as stack:
        endpoint = DBusEndpoint.open(
            state, bus.service_name, bus.object_path, bus.interface_name,
            bus=bus.bus, timeout=bus.call_timeout,
        )
        stack.callback(endpoint.close)
        print("Service registered", flush=True)

        gpio = config.gpio
        line = get_line(gpio.backend, gpio.chipname, gpio.line, gpio.consumer)
        stack.callback(line.release)

        signals = TerminationSignals()
        stack.callback(signals.close)

        service = IndicatorService(line, endpoint, signals, state, poll_timeout=config.loop.poll_timeout)
        return service.run()


def cmd_set(args, config: IndicatorConfig, manager: ConfigManager) -> int:
    ok = _client(config).set(args.action)
    print("success" if ok else "error")
    return 0 if ok else 1


def cmd_get(args, config: IndicatorConfig, manager: ConfigManager) -> int:
    print(_client(config).get())
    return 0


def cmd_policyfile(args, config: IndicatorConfig, manager: ConfigManager) -> int:
    print(policy_file(config.bus.service_name, config.bus.interface_name))
    return 0


def cmd_unitfile(args, config: IndicatorConfig, manager: ConfigManager) -> int:
    # The daemon loads the same file, so only CLI overrides need spelling out
    base = manager.load()
    global_options = []
    if manager.explicit:
        global_options.append(f"--config={manager.config_path.resolve()}")
    global_options += _changed_options(GLOBAL_OPTIONS, config.bus, base.bus)
    service_options = _changed_options(SERVICE_OPTIONS, config.gpio, base.gpio)
    print(unit_file(_executable(), config.bus.service_name, global_options, service_options))
    return 0


COMMANDS = {
    "service": cmd_service,
    "set": cmd_set,
    "get": cmd_get,
    "policyfile": cmd_policyfile,
    "unitfile": cmd_unitfile,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            stream=sys.stderr,
        )

    if args.command is None:
        parser.print_help(sys.stderr)
        return 1

    try:
        manager = ConfigManager(args.config)
        config = manager.load().with_overrides(
            service_name=args.service_name,
            object_path=args.object_path,
            interface_name=args.interface_name,
            bus=args.bus,
            chipname=getattr(args, "chipname", None),
            line=getattr(args, "line", None),
            backend=getattr(args, "backend", None),
        )
        valid, error = config.validate()
        if not valid:
            raise ConfigError(error)
        return COMMANDS[args.command](args, config, manager)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr, flush=True)
        return 1
    except Exception as e:
        print(f"[{PROGNAME}] {classify_error(e).value} error: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
