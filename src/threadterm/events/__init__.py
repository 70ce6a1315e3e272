"""Live-update channel for messages created or mutated after the initial load."""

from .bus import (
    MESSAGE_CREATED,
    MESSAGE_DELETED,
    MESSAGE_UPDATED,
    Event,
    EventBus,
)

__all__ = [
    "Event",
    "EventBus",
    "MESSAGE_CREATED",
    "MESSAGE_DELETED",
    "MESSAGE_UPDATED",
]
