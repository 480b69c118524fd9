"""Remote control panel wiring the session, channel and gesture handling."""
from __future__ import annotations

from typing import Callable, Optional

from .channel import CommandChannel
from .connection import ConnectionManager, ConnectionState, DeviceChooser, RemoteConfig
from .gestures import GestureController, GestureEvent, Surface
from .status import LoggingStatusSink, StatusSink, report_status


class RemotePanel:
    """
    One connect/disconnect pair plus the raise and lower hold buttons.

    Example:
        >>> async with RemotePanel() as panel:
        ...     await panel.press(Surface.RAISE)
        ...     await asyncio.sleep(2)
        ...     await panel.release(Surface.RAISE)
    """

    def __init__(
        self,
        config: Optional[RemoteConfig] = None,
        status: Optional[StatusSink] = None,
        chooser: Optional[DeviceChooser] = None,
    ) -> None:
        self.config = config or RemoteConfig()
        self.status = status or LoggingStatusSink()
        self.channel = CommandChannel(
            status=self.status,
            codes=self.config.command_codes,
            terminator=self.config.terminator,
        )
        self.manager = ConnectionManager(
            self.channel, config=self.config, status=self.status, chooser=chooser
        )
        self.controller = GestureController(self.manager, self.channel, status=self.status)
        report_status(self.status, "Ready to connect.")

    @property
    def state(self) -> ConnectionState:
        """Return the session state."""
        return self.manager.state

    @property
    def controls_enabled(self) -> bool:
        """Return True if the hold buttons should accept input."""
        return self.manager.is_ready

    def subscribe_state(
        self, callback: Callable[[ConnectionState], None]
    ) -> Callable[[], None]:
        """Register a callback for session state changes (e.g. to toggle buttons)."""
        return self.manager.subscribe_state(callback)

    async def connect(self) -> bool:
        """Connect to the lift. Returns True when the controls are live."""
        return await self.manager.connect()

    async def disconnect(self) -> None:
        """Stop any held movement, then drop the session."""
        await self.controller.stop_all()
        await self.manager.disconnect()

    async def handle(self, surface: Surface, event: GestureEvent) -> None:
        """Forward a raw gesture event to the gesture controller."""
        await self.controller.handle(surface, event)

    async def press(self, surface: Surface) -> None:
        """Start holding a hold button."""
        await self.handle(surface, GestureEvent.POINTER_DOWN)

    async def release(self, surface: Surface) -> None:
        """Let go of a hold button."""
        await self.handle(surface, GestureEvent.POINTER_UP)

    async def leave(self, surface: Surface) -> None:
        """Report the pointer sliding off the surface."""
        await self.handle(surface, GestureEvent.POINTER_LEAVE)

    async def cancel(self, surface: Surface) -> None:
        """Report a platform touch cancel on the surface."""
        await self.handle(surface, GestureEvent.TOUCH_CANCEL)

    async def __aenter__(self) -> "RemotePanel":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
