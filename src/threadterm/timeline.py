"""Channel timeline: paginated loading, live updates and read receipts."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
import logging
from typing import Protocol

from .events.bus import (
    MESSAGE_CREATED,
    MESSAGE_DELETED,
    MESSAGE_UPDATED,
    Event,
    EventBus,
)
from .grouping import GROUPING_WINDOW, DisplayRow, annotate
from .models import Message, MessagePage, Reaction
from .pagination import MessagePager
from .task_manager import TaskManager
from .threads import OrphanPolicy, RenderItem, assemble_thread

LOGGER = logging.getLogger(__name__)


class MessageSource(Protocol):
    async def fetch_page(
        self, channel_id: str, cursor: int = 0, limit: int = 50
    ) -> MessagePage: ...

    async def add_reaction(self, message_id: str, emoji: str) -> None: ...

    async def remove_reaction(self, message_id: str, emoji: str) -> None: ...


class ReadSink(Protocol):
    async def mark_read(self, message_id: str, channel_id: str) -> None: ...


def toggled_reactions(
    reactions: tuple[Reaction, ...], emoji: str, user_id: str
) -> tuple[tuple[Reaction, ...], bool]:
    """Return reactions with ``user_id``'s ``emoji`` flipped, and whether it was added."""
    for index, reaction in enumerate(reactions):
        if reaction.emoji != emoji:
            continue
        head, tail = reactions[:index], reactions[index + 1 :]
        if not reaction.reacted_by(user_id):
            bumped = reaction.model_copy(
                update={
                    "user_ids": reaction.user_ids + (user_id,),
                    "count": reaction.count + 1,
                }
            )
            return head + (bumped,) + tail, True
        count = max(reaction.count - 1, 0)
        if count == 0:
            return head + tail, False
        users = tuple(u for u in reaction.user_ids if u != user_id)
        lowered = reaction.model_copy(update={"user_ids": users, "count": count})
        return head + (lowered,) + tail, False
    return reactions + (Reaction(emoji=emoji, count=1, user_ids=(user_id,)),), True


class ChannelTimeline:
    """The render list for one channel, kept current as messages change.

    Assembly is re-run lazily whenever the working set changes. After each
    assembly, unread messages get fire-and-forget mark-as-read calls whose
    failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        channel_id: str,
        source: MessageSource,
        read_sink: ReadSink | None = None,
        tasks: TaskManager | None = None,
        *,
        page_size: int = 50,
        orphan_policy: OrphanPolicy = OrphanPolicy.DROP,
        grouping_window: timedelta = GROUPING_WINDOW,
        mark_read: bool = True,
    ) -> None:
        self.channel_id = channel_id
        self._source = source
        self._read_sink = read_sink
        self._tasks = tasks or TaskManager()
        self.page_size = page_size
        self.orphan_policy = orphan_policy
        self.grouping_window = grouping_window
        self.mark_read = mark_read
        self.pager = MessagePager()
        self._items: list[RenderItem] | None = None
        self._receipts: set[str] = set()
        self._loading = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def messages(self) -> list[Message]:
        return self.pager.messages

    @property
    def has_more(self) -> bool:
        return self.pager.has_more

    @property
    def loading(self) -> bool:
        return self._loading

    def on_change(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        self._items = None
        for listener in list(self._listeners):
            listener()

    def get_message(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    async def load_initial(self) -> None:
        self.pager.reset()
        self._receipts.clear()
        await self._load_page(0)

    async def load_older(self) -> bool:
        """Fetch the next page; False at end of stream or while a load is running."""
        cursor = self.pager.next_cursor
        if self._loading or cursor is None:
            return False
        await self._load_page(cursor)
        return True

    async def _load_page(self, cursor: int) -> None:
        self._loading = True
        try:
            page = await self._source.fetch_page(
                self.channel_id, cursor=cursor, limit=self.page_size
            )
        finally:
            self._loading = False
        self.pager.add_page(page)
        LOGGER.info(
            "timeline.page.loaded",
            extra={
                "event": "timeline.page.loaded",
                "channel_id": self.channel_id,
                "cursor": cursor,
                "count": len(page.messages),
                "has_more": page.next_cursor is not None,
            },
        )
        self._changed()
        self.dispatch_read_receipts()

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(MESSAGE_CREATED, self._on_message_event)
        bus.subscribe(MESSAGE_UPDATED, self._on_message_event)
        bus.subscribe(MESSAGE_DELETED, self._on_message_deleted)

    def _on_message_event(self, event: Event) -> None:
        message = event.data.get("message")
        if isinstance(message, dict):
            message = Message.model_validate(message)
        if isinstance(message, Message):
            self.apply_update(message)

    def _on_message_deleted(self, event: Event) -> None:
        message_id = event.data.get("message_id")
        if isinstance(message_id, str):
            self.remove(message_id)

    def apply_update(self, message: Message) -> None:
        """Adopt a created or mutated message (edit, reactions, read state)."""
        self.pager.upsert(message)
        self._changed()
        self.dispatch_read_receipts()

    def remove(self, message_id: str) -> None:
        self.pager.remove(message_id)
        self._changed()

    def render_items(self) -> list[RenderItem]:
        if self._items is None:
            self._items = assemble_thread(self.messages, self.orphan_policy)
        return self._items

    def display_rows(self) -> list[DisplayRow]:
        return annotate(self.render_items(), self.grouping_window)

    def dispatch_read_receipts(self) -> int:
        """Mark every unread message read in the background; returns calls started."""
        if not self.mark_read or self._read_sink is None:
            return 0
        started = 0
        for message in self.messages:
            if message.read_by_current_user or message.id in self._receipts:
                continue
            self._receipts.add(message.id)
            self._tasks.spawn(self._mark_read(message.id))
            started += 1
        return started

    async def _mark_read(self, message_id: str) -> None:
        assert self._read_sink is not None
        try:
            await self._read_sink.mark_read(message_id, self.channel_id)
        except Exception as exc:  # noqa: BLE001 - read receipts are best effort.
            self._receipts.discard(message_id)
            LOGGER.warning(
                "timeline.mark_read_failed",
                extra={
                    "event": "timeline.mark_read_failed",
                    "message_id": message_id,
                    "error": str(exc),
                },
            )

    async def toggle_reaction(self, message_id: str, emoji: str, user_id: str) -> bool:
        """Flip the user's reaction optimistically; roll back if the call fails."""
        message = self.get_message(message_id)
        if message is None:
            return False
        reactions, added = toggled_reactions(message.reactions, emoji, user_id)
        self.apply_update(message.model_copy(update={"reactions": reactions}))
        try:
            if added:
                await self._source.add_reaction(message_id, emoji)
            else:
                await self._source.remove_reaction(message_id, emoji)
        except Exception as exc:  # noqa: BLE001 - restore the previous state.
            self.apply_update(message)
            LOGGER.warning(
                "timeline.reaction_failed",
                extra={
                    "event": "timeline.reaction_failed",
                    "message_id": message_id,
                    "error": str(exc),
                },
            )
            return False
        return True
