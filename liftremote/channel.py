"""Command channel writing motion commands to the lift's NUS endpoint."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Mapping, Optional

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.exc import BleakError

from .errors import SendNotReadyError, SendTransportError
from .remote_const import (
    COMMAND_ENCODING,
    COMMAND_TERMINATOR,
    DEFAULT_COMMAND_CODES,
)
from .status import LoggingStatusSink, StatusSink, report_status

_LOGGER = logging.getLogger(__name__)


class MotionCommand(Enum):
    """Motion commands understood by the lift firmware."""

    RAISE = "raise"
    LOWER = "lower"
    STOP = "stop"


def encode_command(
    command: MotionCommand,
    codes: Mapping[str, str] = DEFAULT_COMMAND_CODES,
    terminator: str = COMMAND_TERMINATOR,
) -> bytes:
    """
    Encode a motion command into its wire payload.

    The payload is the firmware code for the command followed by the
    terminator, encoded as UTF-8. Example: STOP -> b"STOP\\n"

    Args:
        command: Command to encode
        codes: Firmware code per MotionCommand value
        terminator: Line terminator appended to every code

    Returns:
        Bytes to write to the command characteristic
    """
    return (codes[command.value] + terminator).encode(COMMAND_ENCODING)


class CommandChannel:
    """Write-without-response channel to the lift's command characteristic."""

    def __init__(
        self,
        status: Optional[StatusSink] = None,
        codes: Mapping[str, str] = DEFAULT_COMMAND_CODES,
        terminator: str = COMMAND_TERMINATOR,
    ) -> None:
        """
        Initialize a detached channel.

        Args:
            status: Sink for operator-facing status messages
            codes: Firmware code per MotionCommand value
            terminator: Line terminator appended to every code
        """
        self._status = status or LoggingStatusSink()
        self._codes = dict(codes)
        self._terminator = terminator
        self._client: Optional[BleakClient] = None
        self._characteristic: Optional[BleakGATTCharacteristic] = None

    @property
    def is_attached(self) -> bool:
        """Return True if an endpoint is available for writing."""
        return self._client is not None and self._characteristic is not None

    def attach(self, client: BleakClient, characteristic: BleakGATTCharacteristic) -> None:
        """Bind the channel to a resolved command characteristic."""
        _LOGGER.debug("Attaching command channel to %s", characteristic.uuid)
        self._client = client
        self._characteristic = characteristic

    def detach(self) -> None:
        """Drop the endpoint reference. Safe to call when already detached."""
        if self.is_attached:
            _LOGGER.debug("Detaching command channel")
        self._client = None
        self._characteristic = None

    async def send(self, command: MotionCommand) -> None:
        """
        Transmit a motion command. Never retried.

        Args:
            command: Command to send

        Raises:
            SendNotReadyError: If no endpoint is attached
            SendTransportError: If the BLE stack rejects the write
        """
        client = self._client
        characteristic = self._characteristic
        if client is None or characteristic is None:
            raise SendNotReadyError("Not connected or command characteristic not found.")

        payload = encode_command(command, self._codes, self._terminator)
        report_status(self._status, f"Sending: {self._codes[command.value]}")
        _LOGGER.debug("Writing %s to %s: %s", command.name, characteristic.uuid, payload.hex())
        try:
            # Write without response: waiting for an ack would delay STOP
            await client.write_gatt_char(characteristic, payload, response=False)
        except (BleakError, OSError, asyncio.TimeoutError) as err:
            raise SendTransportError(str(err) or type(err).__name__) from err
        report_status(self._status, "Command sent.")
