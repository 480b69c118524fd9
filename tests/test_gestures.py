"""Unit tests for GestureController."""

import unittest
from unittest.mock import AsyncMock, patch

from bleak.exc import BleakError

from liftremote.channel import CommandChannel
from liftremote.connection import ConnectionManager, ConnectionState
from liftremote.gestures import GESTURE_ACTIONS, GestureAction, GestureController, GestureEvent, Surface

from fakes import (
    RecordingSink,
    client_factory,
    lose_link,
    make_client,
    make_device,
    written_payloads,
)

UP = b"UP\n"
DOWN = b"DOWN\n"
STOP = b"STOP\n"

ENDING_EVENTS = [
    [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_UP],
    [GestureEvent.TOUCH_START, GestureEvent.TOUCH_END],
    [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_LEAVE],
    [GestureEvent.TOUCH_START, GestureEvent.TOUCH_CANCEL],
    [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_LEAVE, GestureEvent.POINTER_UP],
    [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_DOWN, GestureEvent.TOUCH_END],
]


class GestureTestCase(unittest.IsolatedAsyncioTestCase):
    """Runs gestures against a manager connected through patched bleak."""

    async def asyncSetUp(self):
        self.sink = RecordingSink()
        self.client = make_client()

        self.client_patcher = patch(
            "liftremote.connection.BleakClient",
            side_effect=client_factory(self.client),
        )
        self.discover_patcher = patch(
            "liftremote.connection.discover_remotes",
            new_callable=AsyncMock,
            return_value=[make_device()],
        )
        self.client_patcher.start()
        self.discover_patcher.start()

        self.channel = CommandChannel(status=self.sink)
        self.manager = ConnectionManager(self.channel, status=self.sink)
        self.controller = GestureController(self.manager, self.channel, status=self.sink)
        self.assertTrue(await self.manager.connect())

        # Record readiness at every write
        self.ready_at_write = []

        async def write(characteristic, data, response):
            self.ready_at_write.append(self.manager.state is ConnectionState.READY)

        self.client.write_gatt_char.side_effect = write

    async def asyncTearDown(self):
        self.client_patcher.stop()
        self.discover_patcher.stop()

    def tearDown(self):
        self.assertTrue(all(self.ready_at_write), "command written while not READY")

    async def run_events(self, surface, events):
        for event in events:
            await self.controller.handle(surface, event)


class TestGestureTable(unittest.TestCase):

    def test_every_event_is_mapped(self):
        self.assertEqual(set(GESTURE_ACTIONS), set(GestureEvent))

    def test_press_events(self):
        presses = {e for e, a in GESTURE_ACTIONS.items() if a is GestureAction.PRESS}
        self.assertEqual(presses, {GestureEvent.POINTER_DOWN, GestureEvent.TOUCH_START})


class TestPressAndRelease(GestureTestCase):

    async def test_raise_press_then_release(self):
        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_DOWN)
        self.assertTrue(self.controller.is_engaged(Surface.RAISE))
        self.assertIs(self.controller.active_surface, Surface.RAISE)

        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_UP)

        self.assertEqual(written_payloads(self.client), [UP, STOP])
        self.assertFalse(self.controller.is_engaged(Surface.RAISE))
        self.assertIsNone(self.controller.active_surface)

    async def test_raise_press_then_leave(self):
        """Sliding off a held button stops like a release."""
        await self.run_events(Surface.RAISE, [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_LEAVE])

        self.assertEqual(written_payloads(self.client), [UP, STOP])
        self.assertFalse(self.controller.is_engaged(Surface.RAISE))

    async def test_lower_press_then_leave(self):
        await self.run_events(Surface.LOWER, [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_LEAVE])

        self.assertEqual(written_payloads(self.client), [DOWN, STOP])

    async def test_lower_touch_cancel(self):
        await self.run_events(Surface.LOWER, [GestureEvent.TOUCH_START, GestureEvent.TOUCH_CANCEL])

        self.assertEqual(written_payloads(self.client), [DOWN, STOP])

    async def test_leave_while_not_pressed_sends_nothing(self):
        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_LEAVE)

        self.client.write_gatt_char.assert_not_awaited()
        self.assertEqual(self.sink.messages[-1], "Raise button: pointerleave (not pressed)")

    async def test_leave_after_release_sends_nothing_more(self):
        await self.run_events(Surface.RAISE, [
            GestureEvent.POINTER_DOWN,
            GestureEvent.POINTER_UP,
            GestureEvent.POINTER_LEAVE,
        ])

        self.assertEqual(written_payloads(self.client), [UP, STOP])

    async def test_release_without_press_still_stops(self):
        await self.controller.handle(Surface.LOWER, GestureEvent.POINTER_UP)

        self.assertEqual(written_payloads(self.client), [STOP])

    async def test_every_ending_gesture_ends_with_stop(self):
        for surface in Surface:
            for events in ENDING_EVENTS:
                with self.subTest(surface=surface, events=events):
                    self.client.write_gatt_char.reset_mock()

                    await self.run_events(surface, events)

                    self.assertEqual(written_payloads(self.client)[-1], STOP)
                    self.assertFalse(self.controller.is_engaged(surface))


class TestMultiTouch(GestureTestCase):

    async def test_latest_press_wins_and_either_release_stops(self):
        await self.controller.handle(Surface.RAISE, GestureEvent.TOUCH_START)
        await self.controller.handle(Surface.LOWER, GestureEvent.TOUCH_START)
        self.assertIs(self.controller.active_surface, Surface.LOWER)

        await self.controller.handle(Surface.RAISE, GestureEvent.TOUCH_END)

        self.assertEqual(written_payloads(self.client), [UP, DOWN, STOP])
        self.assertTrue(self.controller.is_engaged(Surface.LOWER))
        self.assertIs(self.controller.active_surface, Surface.LOWER)

        await self.controller.handle(Surface.LOWER, GestureEvent.TOUCH_END)

        self.assertEqual(written_payloads(self.client), [UP, DOWN, STOP, STOP])
        self.assertIsNone(self.controller.active_surface)


class TestSendFailures(GestureTestCase):

    async def test_link_loss_mid_press(self):
        """After link loss the release attempts STOP, fails not-ready, no retry."""
        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_DOWN)

        lose_link(self.client)
        self.assertIs(self.manager.state, ConnectionState.IDLE)

        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_UP)

        self.assertEqual(written_payloads(self.client), [UP])
        self.assertEqual(self.sink.messages[-1], "Send failed: Not connected; STOP not sent.")
        self.assertFalse(self.controller.is_engaged(Surface.RAISE))

    async def test_press_while_not_ready_sends_nothing(self):
        await self.manager.disconnect()

        await self.controller.handle(Surface.LOWER, GestureEvent.POINTER_DOWN)

        self.client.write_gatt_char.assert_not_awaited()
        self.assertEqual(self.sink.messages[-1], "Send failed: Not connected; LOWER not sent.")

    async def test_transport_failure_is_reported_not_retried(self):
        async def flaky(characteristic, data, response):
            if data == STOP:
                raise BleakError("ATT error 0x0e")

        self.client.write_gatt_char.side_effect = flaky

        await self.run_events(Surface.RAISE, [GestureEvent.POINTER_DOWN, GestureEvent.POINTER_UP])

        self.assertEqual(written_payloads(self.client), [UP, STOP])
        self.assertEqual(self.sink.messages[-1], "Send failed: ATT error 0x0e")

    async def test_next_gesture_sends_after_failure(self):
        self.client.write_gatt_char.side_effect = [BleakError("busy"), None, None]

        await self.run_events(Surface.RAISE, [
            GestureEvent.POINTER_DOWN,
            GestureEvent.POINTER_UP,
            GestureEvent.POINTER_DOWN,
        ])

        self.assertEqual(written_payloads(self.client), [UP, STOP, UP])

    async def test_unexpected_backend_error_is_contained(self):
        """A non-bleak error from the backend is reported, not raised to the host."""
        self.client.write_gatt_char.side_effect = RuntimeError("dbus proxy gone")

        with self.assertLogs("liftremote.gestures", level="ERROR"):
            await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_DOWN)
            await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_UP)

        self.assertEqual(written_payloads(self.client), [UP, STOP])
        self.assertEqual(self.sink.messages[-1], "Send failed: dbus proxy gone")
        self.assertFalse(self.controller.is_engaged(Surface.RAISE))
        self.assertIs(self.manager.state, ConnectionState.READY)


class TestStopAll(GestureTestCase):

    async def test_stop_all_releases_held_surfaces(self):
        await self.controller.handle(Surface.RAISE, GestureEvent.POINTER_DOWN)
        await self.controller.handle(Surface.LOWER, GestureEvent.POINTER_DOWN)

        await self.controller.stop_all()

        self.assertEqual(written_payloads(self.client), [UP, DOWN, STOP])
        self.assertFalse(self.controller.is_engaged(Surface.RAISE))
        self.assertFalse(self.controller.is_engaged(Surface.LOWER))
        self.assertIsNone(self.controller.active_surface)

    async def test_stop_all_with_nothing_held(self):
        await self.controller.stop_all()

        self.client.write_gatt_char.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
