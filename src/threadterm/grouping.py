"""Decide which consecutive messages collapse under the previous header."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta

from .threads import MessageItem, RenderItem

GROUPING_WINDOW = timedelta(minutes=7)


@dataclass(frozen=True)
class DisplayRow:
    item: RenderItem
    grouped: bool = False


def is_grouped(
    previous: RenderItem | None,
    current: RenderItem,
    window: timedelta = GROUPING_WINDOW,
) -> bool:
    """Return True when ``current`` should hide its author header.

    Only a message directly after another message can group: same author and
    less than ``window`` elapsed since the previous one. Any divider resets it.
    """
    if not isinstance(current, MessageItem) or not isinstance(previous, MessageItem):
        return False
    if previous.message.author_id != current.message.author_id:
        return False
    # POSIX seconds, so naive (local) and aware timestamps can be compared.
    elapsed = (
        current.message.timestamp.timestamp() - previous.message.timestamp.timestamp()
    )
    return elapsed < window.total_seconds()


def annotate(
    items: Sequence[RenderItem], window: timedelta = GROUPING_WINDOW
) -> list[DisplayRow]:
    rows: list[DisplayRow] = []
    previous: RenderItem | None = None
    for item in items:
        rows.append(DisplayRow(item, is_grouped(previous, item, window)))
        previous = item
    return rows
