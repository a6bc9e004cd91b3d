"""
D-Bus control endpoint - how other processes set and query the LED mode.

Server side: ``DBusEndpoint`` claims a well-known name and answers method
calls through ``ControlDispatcher``. It never blocks; the event loop
selects on its socket and calls ``process_pending()`` until it reports
nothing left.

Client side: ``ControlClient`` is what ``led-indicator set/get`` use.

Usage:
    endpoint = DBusEndpoint.open(state, service_name, object_path, interface_name)
    while endpoint.process_pending():
        pass

    ControlClient(service_name, object_path, interface_name).set("blink")
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from jeepney.auth import AuthenticationError
from jeepney.bus_messages import message_bus
from jeepney.io.blocking import DBusConnection, Proxy, open_dbus_connection
from jeepney.low_level import HeaderFields, Message, MessageFlag, MessageType
from jeepney.wrappers import (
    DBusAddress,
    DBusErrorResponse,
    new_error,
    new_method_call,
    new_method_return,
    unwrap_msg,
)

from .errors import ControlChannelError
from .state import LedAction, LedState

logger = logging.getLogger(__name__)

PEER_INTERFACE = "org.freedesktop.DBus.Peer"
INTROSPECTABLE_INTERFACE = "org.freedesktop.DBus.Introspectable"

ERROR_UNKNOWN_METHOD = "org.freedesktop.DBus.Error.UnknownMethod"
ERROR_UNKNOWN_OBJECT = "org.freedesktop.DBus.Error.UnknownObject"
ERROR_UNKNOWN_INTERFACE = "org.freedesktop.DBus.Error.UnknownInterface"
ERROR_INVALID_ARGS = "org.freedesktop.DBus.Error.InvalidArgs"

# RequestName flags and replies (D-Bus specification)
NAME_FLAG_DO_NOT_QUEUE = 4
NAME_PRIMARY_OWNER = 1
NAME_ALREADY_OWNER = 4

INTROSPECT_DOCTYPE = (
    '<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"\n'
    ' "http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">\n'
)


@dataclass(frozen=True)
class Method:
    """One exported method: D-Bus signatures plus the Python callable."""
    in_signature: str
    out_signature: str
    handler: Callable[..., object]


def make_handlers(state: LedState) -> Dict[str, Method]:
    """Dispatch table for the LED interface, bound to ``state``."""

    def set_action(label: str) -> bool:
        action = LedAction.parse(label)
        if action is None:
            logger.debug("set(%r) rejected", label)
            return False
        state.set_action(action)
        logger.debug("set(%r) applied", label)
        return True

    def get_action() -> str:
        return state.get_action().value

    return {
        "set": Method("s", "b", set_action),
        "get": Method("", "s", get_action),
    }


class ControlDispatcher:
    """Turns incoming method calls into replies. Holds no connection."""

    def __init__(self, methods: Dict[str, Method], object_path: str, interface_name: str):
        self.methods = methods
        self.object_path = object_path
        self.interface_name = interface_name

    def dispatch(self, msg: Message) -> Optional[Message]:
        """
        Handle one message from the bus.

        Returns:
            The reply to send, or None for non-calls (signals, replies) and
            calls flagged no_reply_expected.
        """
        if msg.header.message_type != MessageType.method_call:
            return None
        reply = self._handle(msg)
        if msg.header.flags & MessageFlag.no_reply_expected:
            return None
        return reply

    def _handle(self, msg: Message) -> Message:
        fields = msg.header.fields
        path = fields.get(HeaderFields.path)
        interface = fields.get(HeaderFields.interface)
        member = fields.get(HeaderFields.member)
        signature = fields.get(HeaderFields.signature, "")

        if interface == PEER_INTERFACE and member == "Ping":
            return new_method_return(msg)

        if interface == INTROSPECTABLE_INTERFACE and member == "Introspect":
            xml = self.introspect(path)
            if xml is None:
                return new_error(msg, ERROR_UNKNOWN_OBJECT, "s", (f"No such object path '{path}'",))
            return new_method_return(msg, "s", (xml,))

        if path != self.object_path:
            return new_error(msg, ERROR_UNKNOWN_OBJECT, "s", (f"No such object path '{path}'",))

        if interface is not None and interface != self.interface_name:
            return new_error(msg, ERROR_UNKNOWN_INTERFACE, "s", (f"No such interface '{interface}'",))

        method = self.methods.get(member)
        if method is None:
            return new_error(msg, ERROR_UNKNOWN_METHOD, "s", (f"No such method '{member}'",))

        if signature != method.in_signature:
            return new_error(
                msg, ERROR_INVALID_ARGS, "s",
                (f"{member} expects signature '{method.in_signature}', got '{signature}'",),
            )

        result = method.handler(*msg.body)
        return new_method_return(msg, method.out_signature, (result,))

    def introspect(self, path: str) -> Optional[str]:
        """Introspection XML for our object or one of its parent nodes."""
        if path == self.object_path:
            return INTROSPECT_DOCTYPE + self._object_xml()
        prefix = path.rstrip("/") + "/"
        if self.object_path.startswith(prefix):
            child = self.object_path[len(prefix):].split("/", 1)[0]
            return INTROSPECT_DOCTYPE + f'<node>\n  <node name="{child}"/>\n</node>\n'
        return None

    def _object_xml(self) -> str:
        lines = [
            "<node>",
            f'  <interface name="{PEER_INTERFACE}">',
            '    <method name="Ping"/>',
            "  </interface>",
            f'  <interface name="{INTROSPECTABLE_INTERFACE}">',
            '    <method name="Introspect">',
            '      <arg name="xml_data" type="s" direction="out"/>',
            "    </method>",
            "  </interface>",
            f'  <interface name="{self.interface_name}">',
        ]
        for name, method in self.methods.items():
            lines.append(f'    <method name="{name}">')
            if method.in_signature:
                lines.append(f'      <arg type="{method.in_signature}" direction="in"/>')
            lines.append(f'      <arg type="{method.out_signature}" direction="out"/>')
            lines.append("    </method>")
        lines += ["  </interface>", "</node>"]
        return "\n".join(lines) + "\n"


def connect(bus: str = "system") -> DBusConnection:
    """Open a blocking connection to the system or session bus."""
    try:
        return open_dbus_connection(bus=bus.upper())
    except (OSError, KeyError, AuthenticationError) as e:
        raise ControlChannelError(f"cannot connect to D-Bus {bus} bus: {e}") from e


class DBusEndpoint:
    """The daemon's side of the control channel."""

    def __init__(self, connection: DBusConnection, dispatcher: ControlDispatcher, service_name: str):
        self._connection: Optional[DBusConnection] = connection
        self.dispatcher = dispatcher
        self.service_name = service_name

    @classmethod
    def open(
        cls,
        state: LedState,
        service_name: str,
        object_path: str,
        interface_name: str,
        bus: str = "system",
        timeout: float = 5.0,
    ) -> "DBusEndpoint":
        """Connect, export the LED interface, and claim ``service_name``."""
        connection = connect(bus)
        dispatcher = ControlDispatcher(make_handlers(state), object_path, interface_name)
        try:
            (reply,) = Proxy(message_bus, connection, timeout=timeout).RequestName(
                service_name, NAME_FLAG_DO_NOT_QUEUE
            )
        except (DBusErrorResponse, OSError) as e:
            connection.close()
            raise ControlChannelError(f"cannot request D-Bus name {service_name}: {e}") from e
        if reply not in (NAME_PRIMARY_OWNER, NAME_ALREADY_OWNER):
            connection.close()
            raise ControlChannelError(f"D-Bus name {service_name} is owned by another process")
        logger.debug("acquired %s on the %s bus", service_name, bus)
        return cls(connection, dispatcher, service_name)

    def _conn(self) -> DBusConnection:
        if self._connection is None:
            raise ControlChannelError("D-Bus connection is closed")
        return self._connection

    def fileno(self) -> int:
        return self._conn().sock.fileno()

    def process_pending(self) -> bool:
        """
        Handle at most one waiting message without blocking.

        Returns:
            True if a message was handled (call again), False if none was waiting
        """
        connection = self._conn()
        try:
            msg = connection.receive(timeout=0)
        except TimeoutError:
            return False
        reply = self.dispatcher.dispatch(msg)
        if reply is not None:
            connection.send(reply)
        return True

    def release(self) -> None:
        """
        Give up the bus name and disconnect. Idempotent.

        ReleaseName goes out flagged no_reply_expected, so nothing waits
        here. The bus fails any call still queued for us once we disconnect.
        """
        if self._connection is None:
            return
        try:
            msg = message_bus.ReleaseName(self.service_name)
            msg.header.flags |= MessageFlag.no_reply_expected
            self._connection.send(msg)
        finally:
            self.close()

    def close(self) -> None:
        """Disconnect without releasing the name (the bus drops it for us)."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class ControlClient:
    """Calls the daemon's set/get methods."""

    def __init__(
        self,
        service_name: str,
        object_path: str,
        interface_name: str,
        bus: str = "system",
        timeout: float = 5.0,
    ):
        self.address = DBusAddress(object_path, bus_name=service_name, interface=interface_name)
        self.bus = bus
        self.timeout = timeout

    def _call(self, method: str, signature: Optional[str] = None, body: Tuple = ()) -> Tuple:
        connection = connect(self.bus)
        try:
            msg = new_method_call(self.address, method, signature, body)
            return unwrap_msg(connection.send_and_get_reply(msg, timeout=self.timeout))
        except DBusErrorResponse as e:
            raise ControlChannelError(f"{method} failed on {self.address.bus_name}: {e}") from e
        except OSError as e:
            raise ControlChannelError(f"{method} failed, cannot reach {self.address.bus_name}: {e}") from e
        finally:
            connection.close()

    def set(self, action: str) -> bool:
        (result,) = self._call("set", "s", (action,))
        return bool(result)

    def get(self) -> str:
        (result,) = self._call("get")
        return result
