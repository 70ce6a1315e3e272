"""Reconstruct reply threads and flatten them into an ordered render list.

Roots are ordered by timestamp (stable for ties); each root is followed by its
replies in arrival order, which is deliberately *not* chronological. Nesting
is capped at one level: a reply to a reply is shown under the ultimate root.
A date divider precedes every change of local calendar day and a single unread
divider precedes the first unread message of the working set.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
import logging
from typing import Union

from .models import Message

LOGGER = logging.getLogger(__name__)

MAX_REPLY_DEPTH = 1


class OrphanPolicy(str, Enum):
    """What to do with a reply whose parent is not in the working set."""

    DROP = "drop"
    PROMOTE = "promote"


@dataclass(frozen=True)
class MessageItem:
    message: Message
    depth: int = 0


@dataclass(frozen=True)
class DateDivider:
    date: date


@dataclass(frozen=True)
class UnreadDivider:
    pass


RenderItem = Union[MessageItem, DateDivider, UnreadDivider]


@dataclass
class ReplyNode:
    """Transient index entry: a root message and its flattened replies."""

    message: Message
    replies: list[Message] = field(default_factory=list)


def local_date(timestamp: datetime) -> date:
    """Return the calendar day of ``timestamp`` in local time.

    Naive timestamps are taken to already be local.
    """
    if timestamp.tzinfo is None:
        return timestamp.date()
    return timestamp.astimezone().date()


def _sort_key(message: Message) -> float:
    # POSIX seconds compare consistently across naive (local) and aware values.
    return message.timestamp.timestamp()


def find_first_unread(messages: Sequence[Message]) -> str | None:
    """Return the id of the first unread message in collection order."""
    for message in messages:
        if not message.read_by_current_user:
            return message.id
    return None


def _resolve_root(
    message: Message, by_id: dict[str, Message], orphan_policy: OrphanPolicy
) -> str | None:
    """Walk ``reply_to`` links up to the message that owns the thread."""
    seen = {message.id}
    current = message
    while current.reply_to is not None:
        parent = by_id.get(current.reply_to)
        if parent is None:
            if orphan_policy is OrphanPolicy.PROMOTE:
                return current.id
            return None
        if parent.id in seen:
            LOGGER.debug(
                "thread.cycle.dropped",
                extra={"event": "thread.cycle.dropped", "message_id": message.id},
            )
            return None
        seen.add(parent.id)
        current = parent
    return current.id


def build_reply_index(
    messages: Sequence[Message],
    orphan_policy: OrphanPolicy = OrphanPolicy.DROP,
) -> list[ReplyNode]:
    """Partition ``messages`` into roots with their replies, roots unsorted."""
    by_id = {m.id: m for m in messages}
    nodes: dict[str, ReplyNode] = {}
    roots: list[ReplyNode] = []

    def node_for(root_id: str) -> ReplyNode:
        node = nodes.get(root_id)
        if node is None:
            node = ReplyNode(by_id[root_id])
            nodes[root_id] = node
            roots.append(node)
        return node

    for message in messages:
        root_id = _resolve_root(message, by_id, orphan_policy)
        if root_id is None:
            LOGGER.debug(
                "thread.orphan.dropped",
                extra={
                    "event": "thread.orphan.dropped",
                    "message_id": message.id,
                    "reply_to": message.reply_to,
                },
            )
            continue
        node = node_for(root_id)
        if root_id != message.id:
            node.replies.append(message)

    # Roots discovered through a reply must still sit at their own arrival slot
    # so equal timestamps keep collection order.
    position = {m.id: index for index, m in enumerate(messages)}
    roots.sort(key=lambda node: position[node.message.id])
    return roots


def assemble_thread(
    messages: Sequence[Message],
    orphan_policy: OrphanPolicy = OrphanPolicy.DROP,
) -> list[RenderItem]:
    """Produce the ordered render list for ``messages``."""
    roots = build_reply_index(messages, orphan_policy)
    roots.sort(key=lambda node: _sort_key(node.message))
    # Dropped orphans never render, so they cannot carry the unread divider.
    rendered = {node.message.id for node in roots}
    rendered.update(reply.id for node in roots for reply in node.replies)
    first_unread = find_first_unread([m for m in messages if m.id in rendered])

    items: list[RenderItem] = []
    last_date: date | None = None

    def emit(message: Message, depth: int) -> None:
        nonlocal last_date
        current_date = local_date(message.timestamp)
        if current_date != last_date:
            items.append(DateDivider(current_date))
            last_date = current_date
        if message.id == first_unread:
            items.append(UnreadDivider())
        items.append(MessageItem(message, depth))

    for node in roots:
        emit(node.message, 0)
        for reply in node.replies:
            emit(reply, MAX_REPLY_DEPTH)
    return items
