"""Deployment files: D-Bus policy and systemd unit."""

from typing import Sequence

from . import PROGNAME

POLICY_TEMPLATE = """\
<!DOCTYPE busconfig PUBLIC
 "-//freedesktop//DTD D-Bus Bus Configuration 1.0//EN"
 "http://www.freedesktop.org/standards/dbus/1.0/busconfig.dtd">
<!-- save this as /etc/dbus-1/system.d/{progname}.conf -->
<busconfig>
  <policy user="root">
    <allow own="{service_name}"/>
  </policy>
  <policy context="default">
    <allow send_destination="{service_name}"/>
    <allow send_interface="{interface_name}"/>
  </policy>
</busconfig>"""

UNIT_TEMPLATE = """\
# Save this as /etc/systemd/system/{progname}.service
[Unit]
Description=LED Indicator Service
DefaultDependencies=no
Before=network-pre.target

[Service]
Type=dbus
BusName={service_name}
ExecStart={exec_start}

[Install]
WantedBy=sysinit.target"""


def exec_quote(arg: str) -> str:
    """Quote one ExecStart word the way systemd splits command lines."""
    # Specifiers and variable references are expanded even inside quotes
    arg = arg.replace("%", "%%").replace("$", "$$")
    if arg and not any(c.isspace() or c in "\"'\\" for c in arg):
        return arg
    return '"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"'


def policy_file(service_name: str, interface_name: str) -> str:
    """Bus policy letting root own the name and anyone call it."""
    return POLICY_TEMPLATE.format(
        progname=PROGNAME,
        service_name=service_name,
        interface_name=interface_name,
    )


def unit_file(
    exe_path: str,
    service_name: str,
    global_options: Sequence[str] = (),
    service_options: Sequence[str] = (),
) -> str:
    """
    systemd unit running ``<exe> [global options] service [service options]``.

    ``exe_path`` is used as given (it may be an interpreter plus ``-m``).
    Options are quoted where needed; callers include only the ones that
    differ from the defaults.
    """
    words = [exe_path, *map(exec_quote, global_options), "service", *map(exec_quote, service_options)]
    exec_start = " ".join(words)
    return UNIT_TEMPLATE.format(
        progname=PROGNAME,
        service_name=service_name,
        exec_start=exec_start,
    )
