"""BLE remote control panel for a raise/lower lift."""

from .channel import CommandChannel, MotionCommand, encode_command
from .connection import (
    ConnectionManager,
    ConnectionState,
    RemoteConfig,
    Session,
    discover_remote_by_address,
    discover_remotes,
)
from .errors import (
    ConnectError,
    DiscoveryError,
    EndpointNotFoundError,
    LinkError,
    RemoteError,
    SendError,
    SendNotReadyError,
    SendTransportError,
    ServiceNotFoundError,
)
from .gestures import GestureAction, GestureController, GestureEvent, Surface
from .panel import RemotePanel
from .status import LoggingStatusSink, StatusSink

__all__ = [
    "CommandChannel",
    "MotionCommand",
    "encode_command",
    "ConnectionManager",
    "ConnectionState",
    "RemoteConfig",
    "Session",
    "discover_remote_by_address",
    "discover_remotes",
    "ConnectError",
    "DiscoveryError",
    "EndpointNotFoundError",
    "LinkError",
    "RemoteError",
    "SendError",
    "SendNotReadyError",
    "SendTransportError",
    "ServiceNotFoundError",
    "GestureAction",
    "GestureController",
    "GestureEvent",
    "Surface",
    "RemotePanel",
    "LoggingStatusSink",
    "StatusSink",
]
