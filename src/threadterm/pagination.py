"""Merge fetched message pages into one deduplicated working set."""

from __future__ import annotations

from collections.abc import Iterable

from .models import Message, MessagePage


def merge_pages(pages: Iterable[Iterable[Message]]) -> list[Message]:
    """Flatten ``pages`` in order, keeping one entry per message id.

    An id keeps the slot of its first occurrence, but the copy seen last wins:
    a page fetched again, or a live update, carries the fresher state. No
    chronological ordering is applied here.
    """
    slots: dict[str, int] = {}
    merged: list[Message] = []
    for page in pages:
        for message in page:
            slot = slots.get(message.id)
            if slot is None:
                slots[message.id] = len(merged)
                merged.append(message)
            else:
                merged[slot] = message
    return merged


class MessagePager:
    """Accumulate pages for one channel plus a trailing page of live arrivals."""

    def __init__(self) -> None:
        self._pages: list[tuple[Message, ...]] = []
        self._live: dict[str, Message] = {}
        self._removed: set[str] = set()
        self.next_cursor: int | None = 0
        self._loaded = False

    @property
    def has_more(self) -> bool:
        return not self._loaded or self.next_cursor is not None

    @property
    def page_count(self) -> int:
        return len(self._pages)

    def add_page(self, page: MessagePage) -> None:
        self._pages.append(page.messages)
        self.next_cursor = page.next_cursor
        self._loaded = True

    def upsert(self, message: Message) -> None:
        """Record a created or mutated message from the live channel."""
        self._removed.discard(message.id)
        self._live[message.id] = message

    def remove(self, message_id: str) -> None:
        self._live.pop(message_id, None)
        self._removed.add(message_id)

    def reset(self) -> None:
        self._pages.clear()
        self._live.clear()
        self._removed.clear()
        self.next_cursor = 0
        self._loaded = False

    @property
    def messages(self) -> list[Message]:
        merged = merge_pages([*self._pages, list(self._live.values())])
        if not self._removed:
            return merged
        return [m for m in merged if m.id not in self._removed]
