"""Scrollable channel view rendering threaded messages and dividers."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.widgets import Static

from ..grouping import DisplayRow
from ..models import Message
from ..threads import DateDivider, MessageItem, UnreadDivider

UNREAD_LABEL = "New Messages"


def date_label(day: date, today: date | None = None) -> str:
    """Human label for a date divider."""
    today = today or date.today()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day:%B} {day.day}, {day.year}"


def reactions_line(message: Message, user_id: str = "") -> str:
    parts = []
    for reaction in message.reactions:
        marker = "*" if user_id and reaction.reacted_by(user_id) else ""
        parts.append(f"{reaction.emoji} {reaction.count}{marker}")
    return "  ".join(parts)


class MessageRow(Vertical, can_focus=True):
    """One message; the header is hidden when grouped with the previous row."""

    DEFAULT_CSS = """
    MessageRow {
        height: auto;
        padding: 0 1;
    }
    MessageRow.grouped {
        margin-top: 0;
    }
    MessageRow.reply {
        margin-left: 4;
        border-left: solid $panel;
    }
    MessageRow:focus {
        background: $boost;
    }
    MessageRow > .message-header {
        text-style: bold;
    }
    MessageRow > .message-reactions {
        color: $text-muted;
    }
    """

    def __init__(
        self,
        message: Message,
        *,
        depth: int = 0,
        grouped: bool = False,
        current_user_id: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.message = message
        self.depth = depth
        self.grouped = grouped
        self.current_user_id = current_user_id
        if grouped:
            self.add_class("grouped")
        if depth:
            self.add_class("reply")

    def compose(self) -> ComposeResult:
        if not self.grouped:
            stamp = self.message.timestamp.astimezone().strftime("%H:%M")
            header = Text.assemble(
                (self.message.author_id, "bold"), "  ", (stamp, "dim")
            )
            yield Static(header, classes="message-header")
        yield Static(Markdown(self.message.content or ""), classes="message-body")
        line = reactions_line(self.message, self.current_user_id)
        if line:
            yield Static(line, classes="message-reactions")


class DateDividerRow(Static):
    DEFAULT_CSS = """
    DateDividerRow {
        height: 1;
        content-align: center middle;
        color: $text-muted;
        margin: 1 0 0 0;
    }
    """

    def __init__(self, day: date, today: date | None = None, **kwargs: Any) -> None:
        super().__init__(f"── {date_label(day, today)} ──", **kwargs)
        self.day = day


class UnreadDividerRow(Static):
    DEFAULT_CSS = """
    UnreadDividerRow {
        height: 1;
        content-align: center middle;
        color: $error;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(f"── {UNREAD_LABEL} ──", **kwargs)


class ThreadView(VerticalScroll):
    """Hosts the rendered rows of one channel, newest at the bottom."""

    def __init__(self, current_user_id: str = "", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.current_user_id = current_user_id

    def build_rows(
        self, rows: Sequence[DisplayRow], today: date | None = None
    ) -> list[Static | MessageRow]:
        widgets: list[Static | MessageRow] = []
        for row in rows:
            item = row.item
            if isinstance(item, DateDivider):
                widgets.append(DateDividerRow(item.date, today))
            elif isinstance(item, UnreadDivider):
                widgets.append(UnreadDividerRow())
            elif isinstance(item, MessageItem):
                widgets.append(
                    MessageRow(
                        item.message,
                        depth=item.depth,
                        grouped=row.grouped,
                        current_user_id=self.current_user_id,
                    )
                )
        return widgets

    async def show_rows(
        self, rows: Sequence[DisplayRow], *, keep_position: bool = False
    ) -> None:
        """Replace the rendered rows; scroll to the end unless asked not to."""
        focused_id = None
        if isinstance(self.app.focused, MessageRow):
            focused_id = self.app.focused.message.id
        await self.remove_children()
        widgets = self.build_rows(rows)
        if widgets:
            await self.mount_all(widgets)
        if focused_id is not None:
            for widget in widgets:
                if isinstance(widget, MessageRow) and widget.message.id == focused_id:
                    widget.focus(scroll_visible=False)
                    break
        if not keep_position:
            self.scroll_end(animate=False)

    def focused_message(self) -> Message | None:
        focused = self.app.focused
        if isinstance(focused, MessageRow) and focused in self.children:
            return focused.message
        return None

