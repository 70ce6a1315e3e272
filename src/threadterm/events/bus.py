"""Publish/subscribe bus carrying live message updates.

Usage:
    bus = EventBus()

    async def on_created(event):
        print(event.data["message"].id)

    bus.subscribe(MESSAGE_CREATED, on_created)
    await bus.publish(MESSAGE_CREATED, {"message": message}, source="realtime")
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import inspect
import logging
from typing import Any, Union

LOGGER = logging.getLogger(__name__)

MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
MESSAGE_DELETED = "message.deleted"


@dataclass(frozen=True)
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


Handler = Callable[[Event], Union[Awaitable[None], None]]


class EventBus:
    """Fan events out to subscribers; a failing handler never stops the others."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = {}

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(event_name)
        if handlers and handler in handlers:
            handlers.remove(handler)
            LOGGER.debug("Unsubscribed from event: %s", event_name)

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        event = Event(name=event_name, data=data, source=source)
        handlers = list(self._subscribers.get(event_name, []))
        if not handlers:
            LOGGER.debug("No subscribers for event: %s", event_name)
            return

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001 - isolate subscribers.
                LOGGER.error(
                    "events.handler_failed",
                    extra={
                        "event": "events.handler_failed",
                        "event_name": event_name,
                        "error": str(exc),
                    },
                )

    def clear(self, event_name: str | None = None) -> None:
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
