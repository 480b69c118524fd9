"""BLE session management for the lift remote."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from .channel import CommandChannel, MotionCommand
from .errors import (
    ConnectError,
    DiscoveryError,
    EndpointNotFoundError,
    LinkError,
    ServiceNotFoundError,
)
from .remote_const import (
    COMMAND_TERMINATOR,
    DEFAULT_COMMAND_CODES,
    DEFAULT_SCAN_TIMEOUT,
    SERVICE_UUID,
    WRITE_CHARACTERISTIC_UUID,
)
from .status import LoggingStatusSink, StatusSink, report_status

_LOGGER = logging.getLogger(__name__)

DeviceChooser = Callable[[list[BLEDevice]], Optional[BLEDevice]]


class ConnectionState(Enum):
    """Lifecycle states of the single BLE session."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    LINKING = "linking"
    RESOLVING_ENDPOINT = "resolving endpoint"
    READY = "ready"
    DISCONNECTED = "disconnected"


CONNECTING_STATES = frozenset(
    {
        ConnectionState.DISCOVERING,
        ConnectionState.LINKING,
        ConnectionState.RESOLVING_ENDPOINT,
    }
)


@dataclass
class RemoteConfig:
    """Settings for reaching the lift and talking to its firmware."""

    address: Optional[str] = None
    service_uuid: str = SERVICE_UUID
    write_characteristic_uuid: str = WRITE_CHARACTERISTIC_UUID
    scan_timeout: float = DEFAULT_SCAN_TIMEOUT
    command_codes: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_COMMAND_CODES)
    )
    terminator: str = COMMAND_TERMINATOR

    def __post_init__(self) -> None:
        codes = [self.command_codes.get(command.value) for command in MotionCommand]
        if not all(codes):
            raise ValueError("Every motion command needs a non-empty code")
        if len(set(codes)) != len(codes):
            raise ValueError(f"Command codes must be distinct: {codes}")
        if self.scan_timeout <= 0:
            raise ValueError("scan_timeout must be positive")


@dataclass
class Session:
    """The one link to the lift peripheral."""

    device: BLEDevice
    client: Optional[BleakClient] = None
    characteristic: Optional[BleakGATTCharacteristic] = None

    @property
    def name(self) -> str:
        """Return the peripheral's name, falling back to its address."""
        return self.device.name or self.device.address


class _ConnectAborted(ConnectError):
    """The connect sequence was interrupted by disconnect() or link loss."""


def _first_device(devices: list[BLEDevice]) -> Optional[BLEDevice]:
    """Default chooser: take the first matching lift."""
    return devices[0] if devices else None


async def discover_remotes(
    service_uuid: str = SERVICE_UUID,
    timeout: float = DEFAULT_SCAN_TIMEOUT,
) -> list[BLEDevice]:
    """
    Scan for peripherals advertising the lift control service.

    Args:
        service_uuid: Service UUID the peripheral must advertise
        timeout: Scan duration in seconds

    Returns:
        List of matching BLE devices
    """
    _LOGGER.debug("Scanning for %s (timeout: %ss)", service_uuid, timeout)
    found = await BleakScanner.discover(
        timeout=timeout, return_adv=True, service_uuids=[service_uuid]
    )

    wanted = service_uuid.lower()
    devices = []
    for device, adv in found.values():
        # Not every backend honours the service filter
        if wanted in (uuid.lower() for uuid in adv.service_uuids):
            _LOGGER.info("Found lift: %s (%s)", device.name, device.address)
            devices.append(device)

    _LOGGER.debug("Found %d lift(s)", len(devices))
    return devices


async def discover_remote_by_address(
    address: str,
    service_uuid: str = SERVICE_UUID,
    timeout: float = DEFAULT_SCAN_TIMEOUT,
) -> Optional[BLEDevice]:
    """
    Find the lift at a known BLE address.

    A device at that address which advertises services, but not the lift
    control service, is treated as the wrong peripheral and skipped.

    Args:
        address: BLE address of the lift
        service_uuid: Control service the lift is expected to advertise
        timeout: Scan duration in seconds

    Returns:
        BLEDevice if the lift answered, None otherwise
    """
    wanted_address = address.upper()
    wanted_service = service_uuid.lower()

    def is_lift(device: BLEDevice, adv) -> bool:
        if device.address.upper() != wanted_address:
            return False
        advertised = [uuid.lower() for uuid in adv.service_uuids]
        if advertised and wanted_service not in advertised:
            _LOGGER.debug("%s does not advertise %s", device.address, service_uuid)
            return False
        return True

    _LOGGER.debug("Searching for lift at %s", address)
    device = await BleakScanner.find_device_by_filter(is_lift, timeout=timeout)
    if device is None:
        _LOGGER.warning("No lift answering at %s", address)
    else:
        _LOGGER.info("Lift %s answered at %s", device.name, device.address)
    return device


class ConnectionManager:
    """
    Owns the lifecycle of the single BLE session.

    IDLE -> DISCOVERING -> LINKING -> RESOLVING_ENDPOINT -> READY, with
    DISCONNECTED -> IDLE reachable from every state. The command channel
    is attached exactly while the state is READY.
    """

    def __init__(
        self,
        channel: CommandChannel,
        config: Optional[RemoteConfig] = None,
        status: Optional[StatusSink] = None,
        chooser: Optional[DeviceChooser] = None,
    ) -> None:
        """
        Initialize the manager in the IDLE state.

        Args:
            channel: Command channel to attach the resolved endpoint to
            config: Connection settings (defaults to the NUS lift profile)
            status: Sink for operator-facing status messages
            chooser: Picks one of the discovered lifts; returning None
                     means the operator cancelled. Defaults to the first.
        """
        self._channel = channel
        self._config = config or RemoteConfig()
        self._status = status or LoggingStatusSink()
        self._chooser = chooser or _first_device
        self._state = ConnectionState.IDLE
        self._session: Optional[Session] = None
        self._abort_reason: Optional[str] = None
        self._state_callbacks: list[Callable[[ConnectionState], None]] = []
        self.last_error: Optional[ConnectError] = None

    @property
    def state(self) -> ConnectionState:
        """Return the current session state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Return True if commands may be sent right now."""
        return self._state is ConnectionState.READY and self._channel.is_attached

    @property
    def session(self) -> Optional[Session]:
        """Return the current session, if any."""
        return self._session

    def subscribe_state(
        self, callback: Callable[[ConnectionState], None]
    ) -> Callable[[], None]:
        """
        Register a callback for state transitions.

        Returns:
            Unsubscribe function
        """
        self._state_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._state_callbacks:
                self._state_callbacks.remove(callback)

        return unsubscribe

    async def connect(self) -> bool:
        """
        Discover, link and resolve the lift's command endpoint.

        Failures are reported to the status sink and kept in last_error;
        the manager always ends up READY or back in IDLE.

        Returns:
            True if the session is READY
        """
        if self._state is not ConnectionState.IDLE:
            report_status(self._status, f"Already {self._state.value}; connect ignored.")
            return False

        self._abort_reason = None
        self.last_error = None
        try:
            characteristic = await self._establish_session()
        except asyncio.CancelledError:
            report_status(self._status, "Connection cancelled.")
            try:
                await self._unlink()
            finally:
                self._reset("Connection closed.")
            raise
        except ConnectError as err:
            failure = err
        except Exception as err:
            _LOGGER.exception("Unexpected error connecting to lift: %s", err)
            failure = ConnectError(f"Unexpected error: {err}")
        else:
            session = self._session
            session.characteristic = characteristic
            self._channel.attach(session.client, characteristic)
            self._set_state(ConnectionState.READY, f"Connected to {session.name}")
            return True

        self.last_error = failure
        if isinstance(failure, _ConnectAborted):
            report_status(self._status, f"Connection aborted: {failure}")
        else:
            report_status(self._status, f"Connection failed: {failure}")
        await self._unlink()
        self._reset("Connection closed.")
        return False

    async def _establish_session(self) -> BleakGATTCharacteristic:
        """Run the discover, link and resolve steps in order."""
        self._set_state(ConnectionState.DISCOVERING, "Requesting Bluetooth device...")
        device = await self._discover()
        self._session = Session(device=device)
        self._check_abort()

        self._set_state(ConnectionState.LINKING, f"Connecting to {self._session.name}...")
        client = BleakClient(device, disconnected_callback=self._on_disconnected)
        self._session.client = client
        try:
            await client.connect()
        except (BleakError, OSError, asyncio.TimeoutError) as err:
            raise LinkError(f"Failed to connect to {self._session.name}: {err}") from err
        self._check_abort()

        self._set_state(
            ConnectionState.RESOLVING_ENDPOINT, "Getting command characteristic..."
        )
        return self._resolve_endpoint(client)

    async def _discover(self) -> BLEDevice:
        """Pick the lift to link to, by address or by advertised service."""
        config = self._config
        try:
            if config.address:
                device = await discover_remote_by_address(
                    config.address, config.service_uuid, config.scan_timeout
                )
                if device is None:
                    raise DiscoveryError(f"No lift found at {config.address}")
                return device
            candidates = await discover_remotes(config.service_uuid, config.scan_timeout)
        except (BleakError, OSError) as err:
            raise DiscoveryError(f"Scan failed: {err}") from err

        if not candidates:
            raise DiscoveryError(f"No lift advertising {config.service_uuid} found")
        device = self._chooser(candidates)
        if device is None:
            raise DiscoveryError("Device selection cancelled")
        return device

    def _resolve_endpoint(self, client: BleakClient) -> BleakGATTCharacteristic:
        """Look up the control service and its command characteristic."""
        try:
            services = client.services
        except BleakError as err:
            raise LinkError(f"Service discovery failed: {err}") from err

        service = services.get_service(self._config.service_uuid)
        if service is None:
            raise ServiceNotFoundError(self._config.service_uuid)
        characteristic = service.get_characteristic(self._config.write_characteristic_uuid)
        if characteristic is None:
            raise EndpointNotFoundError(self._config.write_characteristic_uuid)
        return characteristic

    def _check_abort(self) -> None:
        """Raise if disconnect() or link loss interrupted the connect sequence."""
        if self._abort_reason is not None:
            raise _ConnectAborted(self._abort_reason)

    async def disconnect(self) -> None:
        """
        Tear down the session. Idempotent.

        While a connect is in flight this only requests an abort; the
        connect sequence unlinks and returns to IDLE once its current
        step settles.
        """
        if self._state is ConnectionState.IDLE:
            report_status(self._status, "No device connected.")
            return

        if self._state in CONNECTING_STATES:
            if self._abort_reason is None:
                self._abort_reason = "disconnect requested"
                report_status(self._status, "Disconnect requested; aborting connection...")
            return

        session = self._session
        client = session.client if session else None
        # Clear first so the disconnected callback sees a stale client
        self._channel.detach()
        self._session = None
        if client is not None and client.is_connected:
            report_status(self._status, "Disconnecting from device...")
            self._reset("Device disconnected.")
            await self._disconnect_client(client)
        else:
            report_status(self._status, "Device already disconnected.")
            self._reset("Device disconnected.")

    async def __aenter__(self) -> "ConnectionManager":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _on_disconnected(self, client: BleakClient) -> None:
        """Handle an unsolicited link loss reported by bleak."""
        session = self._session
        if session is None or session.client is not client:
            _LOGGER.debug("Ignoring disconnect from stale client")
            return

        if self._state is ConnectionState.READY:
            _LOGGER.info("Link to %s lost", session.name)
            self._channel.detach()
            self._session = None
            self._reset("Device disconnected.")
        elif self._abort_reason is None:
            self._abort_reason = "link lost"

    async def _unlink(self) -> None:
        """Best-effort unlink of a partially established session."""
        session = self._session
        self._session = None
        self._channel.detach()
        if session is None or session.client is None:
            return
        if session.client.is_connected:
            await self._disconnect_client(session.client)

    async def _disconnect_client(self, client: BleakClient) -> None:
        """Unlink a client, logging rather than raising on failure."""
        _LOGGER.debug("Unlinking %s", client.address)
        try:
            await client.disconnect()
        except (BleakError, OSError, asyncio.TimeoutError) as err:
            _LOGGER.warning("Error during disconnect: %s", err)

    def _reset(self, message: str) -> None:
        """Pass through DISCONNECTED back to IDLE."""
        self._set_state(ConnectionState.DISCONNECTED, message)
        self._set_state(ConnectionState.IDLE, "Ready to connect.")

    def _set_state(self, state: ConnectionState, message: str) -> None:
        """Move to a new state, report it and notify subscribers."""
        _LOGGER.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        report_status(self._status, message)
        for callback in list(self._state_callbacks):
            try:
                callback(state)
            except Exception as err:
                _LOGGER.error("Error in state callback: %s", err)
