"""Composer region: markdown toolbar, mention menu, text area and send row."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, OptionList, Static, TextArea

from ..composer.buffer import ReplyTarget
from ..composer.mentions import Bounds
from ..composer.paste import PasteDecision, extract_dropped_paths
from ..models import UploadedFile, UserCandidate

Classifier = Callable[[str, bool], PasteDecision]

MENTION_KEYS = frozenset({"up", "down", "enter", "tab", "escape"})
NEWLINE_KEYS = frozenset({"shift+enter", "ctrl+j"})

TOOLBAR: tuple[tuple[str, str], ...] = (
    ("bold", "B"),
    ("italic", "I"),
    ("inline_code", "`"),
    ("code_block", "```"),
    ("link", "Link"),
    ("bullet_list", "•"),
    ("numbered_list", "1."),
    ("quote", ">"),
)


def offset_to_location(text: str, offset: int) -> tuple[int, int]:
    """Convert a flat character offset into a ``(row, column)`` pair."""
    offset = max(0, min(offset, len(text)))
    row = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return row, offset - line_start


def location_to_offset(text: str, location: tuple[int, int]) -> int:
    row, column = location
    lines = text.split("\n")
    row = max(0, min(row, len(lines) - 1))
    column = max(0, min(column, len(lines[row])))
    return sum(len(line) + 1 for line in lines[:row]) + column


class ComposerArea(TextArea):
    """Multi-line input that hands pastes and mention keys to the app."""

    class PasteReceived(Message):
        """Posted for pastes the composer handles instead of inserting verbatim."""

        def __init__(self, text: str, paths: list[str], decision: PasteDecision) -> None:
            super().__init__()
            self.text = text
            self.paths = paths
            self.decision = decision

    class Submitted(Message):
        """Posted when Enter is pressed outside a mention query."""

    class MentionKey(Message):
        """Posted for navigation keys while the mention menu is open."""

        def __init__(self, key: str) -> None:
            super().__init__()
            self.key = key

    def __init__(self, classifier: Classifier | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.classifier = classifier
        self.mention_active = False

    @property
    def caret_offset(self) -> int:
        return location_to_offset(self.text, self.cursor_location)

    @property
    def selection_offsets(self) -> tuple[int, int]:
        """Selection as ``(anchor, caret)`` flat offsets."""
        text = self.text
        return (
            location_to_offset(text, self.selection.start),
            location_to_offset(text, self.selection.end),
        )

    @property
    def bounds(self) -> Bounds:
        region = self.region
        return Bounds(region.y, region.x, region.width, region.height)

    def apply_caret(self, offset: int) -> None:
        self.move_cursor(offset_to_location(self.text, offset))

    def show_text(self, text: str) -> None:
        """Replace the content when it differs from what is displayed."""
        if self.text != text:
            self.load_text(text)

    async def _on_key(self, event: events.Key) -> None:
        key = event.key
        if self.mention_active and key in MENTION_KEYS:
            event.stop()
            event.prevent_default()
            self.post_message(self.MentionKey(key))
        elif key == "enter":
            event.stop()
            event.prevent_default()
            self.post_message(self.Submitted())
        elif key in NEWLINE_KEYS and not self.read_only:
            event.stop()
            event.prevent_default()
            self.insert("\n")

    async def _on_paste(self, event: events.Paste) -> None:
        if self.read_only or self.classifier is None:
            return
        paths = extract_dropped_paths(event.text)
        decision = self.classifier(event.text, bool(paths))
        if decision.intercepts:
            event.stop()
            event.prevent_default()
            self.post_message(self.PasteReceived(event.text, paths, decision))


class ComposerBox(Vertical):
    """Input region with toolbar, suggestion menu, attachments and send button."""

    DEFAULT_CSS = """
    ComposerBox {
        height: auto;
    }
    ComposerBox #composer_toolbar {
        height: auto;
    }
    ComposerBox #composer_toolbar Button {
        min-width: 5;
        margin-right: 1;
    }
    ComposerBox #composer_input {
        height: 6;
    }
    ComposerBox #mention_menu {
        max-height: 8;
        width: 50;
    }
    ComposerBox .hidden {
        display: none;
    }
    ComposerBox #composer_footer {
        height: auto;
    }
    ComposerBox #attachments {
        width: 1fr;
        color: $text-muted;
    }
    ComposerBox #reply_banner {
        color: $text-muted;
    }
    """

    class FormatRequested(Message):
        def __init__(self, format_name: str) -> None:
            super().__init__()
            self.format_name = format_name

    class SendRequested(Message):
        """Posted when the send button is pressed."""

    class AttachRequested(Message):
        """Posted when the attach button is pressed."""

    class MentionChosen(Message):
        def __init__(self, index: int) -> None:
            super().__init__()
            self.index = index

    def compose(self) -> ComposeResult:
        yield Static("", id="reply_banner", classes="hidden")
        with Horizontal(id="composer_toolbar"):
            for name, label in TOOLBAR:
                yield Button(label, id=f"format_{name}")
        yield OptionList(id="mention_menu", classes="hidden")
        yield ComposerArea(id="composer_input")
        with Horizontal(id="composer_footer"):
            yield Static("", id="attachments")
            yield Button("Attach", id="attach_button", variant="default")
            yield Button("Send", id="send_button", variant="success")

    @property
    def area(self) -> ComposerArea:
        return self.query_one("#composer_input", ComposerArea)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        if button_id.startswith("format_"):
            event.stop()
            self.post_message(self.FormatRequested(button_id[len("format_") :]))
        elif button_id == "attach_button":
            event.stop()
            self.post_message(self.AttachRequested())
        elif button_id == "send_button":
            event.stop()
            self.post_message(self.SendRequested())

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "mention_menu":
            return
        event.stop()
        self.post_message(self.MentionChosen(event.option_index))

    def show_mentions(self, candidates: Sequence[UserCandidate], highlighted: int) -> None:
        menu = self.query_one("#mention_menu", OptionList)
        menu.clear_options()
        if not candidates:
            self.hide_mentions()
            return
        menu.add_options(
            f"{c.name} <{c.email}>" if c.email else c.name for c in candidates
        )
        menu.highlighted = highlighted
        menu.remove_class("hidden")

    def hide_mentions(self) -> None:
        menu = self.query_one("#mention_menu", OptionList)
        menu.clear_options()
        menu.add_class("hidden")

    def set_attachments(self, attachments: Sequence[UploadedFile]) -> None:
        label = ", ".join(a.name for a in attachments)
        self.query_one("#attachments", Static).update(
            f"Attached: {label}" if label else ""
        )

    def set_reply(self, target: ReplyTarget | None) -> None:
        banner = self.query_one("#reply_banner", Static)
        if target is None:
            banner.update("")
            banner.add_class("hidden")
        else:
            banner.update(f"Replying to {target.author_id} (esc to cancel)")
            banner.remove_class("hidden")

    def set_send_enabled(self, enabled: bool, uploading: bool = False) -> None:
        button = self.query_one("#send_button", Button)
        button.disabled = not enabled
        button.label = "Uploading..." if uploading else "Send"
