"""Press-and-hold gesture handling for the raise and lower buttons."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .channel import CommandChannel, MotionCommand
from .connection import ConnectionManager
from .errors import SendError, SendNotReadyError
from .status import LoggingStatusSink, StatusSink, report_status

_LOGGER = logging.getLogger(__name__)


class Surface(Enum):
    """The two hold-to-move control surfaces."""

    RAISE = "raise"
    LOWER = "lower"

    @property
    def command(self) -> MotionCommand:
        """Return the motion command sent while this surface is held."""
        return MotionCommand(self.value)


class GestureEvent(Enum):
    """Raw pointer and touch events delivered by the host UI."""

    POINTER_DOWN = "pointerdown"
    TOUCH_START = "touchstart"
    POINTER_UP = "pointerup"
    TOUCH_END = "touchend"
    POINTER_LEAVE = "pointerleave"
    TOUCH_CANCEL = "touchcancel"


class GestureAction(Enum):
    """What a gesture event means for the surface it targets."""

    PRESS = "press"
    RELEASE = "release"
    LEAVE = "leave"
    CANCEL = "cancel"


# Shared by both surfaces
GESTURE_ACTIONS = {
    GestureEvent.POINTER_DOWN: GestureAction.PRESS,
    GestureEvent.TOUCH_START: GestureAction.PRESS,
    GestureEvent.POINTER_UP: GestureAction.RELEASE,
    GestureEvent.TOUCH_END: GestureAction.RELEASE,
    GestureEvent.POINTER_LEAVE: GestureAction.LEAVE,
    GestureEvent.TOUCH_CANCEL: GestureAction.CANCEL,
}


class GestureController:
    """
    Turns gesture events into motion commands.

    A press sends the surface's motion command. Release, cancel and
    leave-while-pressed all send STOP, so an interrupted gesture never
    leaves the lift moving. If both surfaces are held the latest press
    wins, and letting go of either one stops the lift.

    Every send is attempted once; failures are reported, never retried.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        channel: CommandChannel,
        status: Optional[StatusSink] = None,
    ) -> None:
        self._manager = manager
        self._channel = channel
        self._status = status or LoggingStatusSink()
        self._engaged = {surface: False for surface in Surface}
        self._active: Optional[Surface] = None

    @property
    def active_surface(self) -> Optional[Surface]:
        """Return the most recently pressed surface that is still held, if any."""
        return self._active

    def is_engaged(self, surface: Surface) -> bool:
        """Return True if the surface is currently held."""
        return self._engaged[surface]

    async def handle(self, surface: Surface, event: GestureEvent) -> None:
        """
        Process one gesture event for one surface.

        Args:
            surface: Surface the event was delivered to
            event: Raw gesture event
        """
        action = GESTURE_ACTIONS[event]
        label = f"{surface.name.title()} button: {event.value}"
        _LOGGER.debug("%s -> %s", label, action.value)

        if action is GestureAction.PRESS:
            self._engaged[surface] = True
            self._active = surface
            report_status(self._status, label)
            await self._send(surface.command)
            return

        if action is GestureAction.LEAVE and not self._engaged[surface]:
            report_status(self._status, f"{label} (not pressed)")
            return

        self._disengage(surface)
        report_status(self._status, label)
        await self._send(MotionCommand.STOP)

    async def stop_all(self) -> None:
        """Release every held surface and send a single STOP if any was held."""
        held = [surface for surface in Surface if self._engaged[surface]]
        if not held:
            return
        for surface in held:
            self._engaged[surface] = False
        self._active = None
        await self._send(MotionCommand.STOP)

    def _disengage(self, surface: Surface) -> None:
        """Release one surface and hand the active role to any other held one."""
        self._engaged[surface] = False
        if self._active is surface:
            others = [other for other in Surface if self._engaged[other]]
            self._active = others[0] if others else None

    async def _send(self, command: MotionCommand) -> bool:
        """Attempt one send; report failures and return False instead of raising."""
        # Checked at send time, never cached across an await
        if not self._manager.is_ready:
            err = SendNotReadyError(f"Not connected; {command.name} not sent.")
            report_status(self._status, f"Send failed: {err}")
            return False
        try:
            await self._channel.send(command)
        except SendError as err:
            report_status(self._status, f"Send failed: {err}")
            return False
        except Exception as err:
            _LOGGER.exception("Unexpected error sending %s: %s", command.name, err)
            report_status(self._status, f"Send failed: {err}")
            return False
        return True
