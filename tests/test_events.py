"""Tests for the live-update event bus."""

from __future__ import annotations

import unittest

from threadterm.events import MESSAGE_CREATED, MESSAGE_DELETED, Event, EventBus


class EventBusTests(unittest.IsolatedAsyncioTestCase):
    async def test_sync_and_async_handlers_receive_event(self) -> None:
        bus = EventBus()
        seen: list[tuple[str, str | None]] = []

        def sync_handler(event: Event) -> None:
            seen.append(("sync", event.source))

        async def async_handler(event: Event) -> None:
            seen.append(("async", event.data["message_id"]))

        bus.subscribe(MESSAGE_DELETED, sync_handler)
        bus.subscribe(MESSAGE_DELETED, async_handler)
        await bus.publish(MESSAGE_DELETED, {"message_id": "m1"}, source="realtime")

        self.assertEqual(seen, [("sync", "realtime"), ("async", "m1")])

    async def test_failing_handler_does_not_stop_others(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def broken(event: Event) -> None:
            raise ValueError("bad payload")

        bus.subscribe(MESSAGE_CREATED, broken)
        bus.subscribe(MESSAGE_CREATED, lambda event: seen.append(event.name))

        with self.assertLogs("threadterm.events.bus", level="ERROR") as logs:
            await bus.publish(MESSAGE_CREATED, {})

        self.assertEqual(seen, [MESSAGE_CREATED])
        self.assertIn("events.handler_failed", logs.output[0])

    async def test_unsubscribe_and_clear(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def handler(event: Event) -> None:
            seen.append(event.name)

        bus.subscribe(MESSAGE_CREATED, handler)
        bus.unsubscribe(MESSAGE_CREATED, handler)
        await bus.publish(MESSAGE_CREATED, {})
        bus.subscribe(MESSAGE_DELETED, handler)
        bus.clear()
        await bus.publish(MESSAGE_DELETED, {})

        self.assertEqual(seen, [])


if __name__ == "__main__":
    unittest.main()
