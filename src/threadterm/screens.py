"""Modal prompts used by the composer and the thread view."""

from __future__ import annotations

from typing import Any

from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Input, OptionList, Static

QUICK_REACTIONS: tuple[str, ...] = ("👍", "❤️", "😂", "🎉", "👀", "🙏")


class TextPromptScreen(ModalScreen[str | None]):
    """Modal screen to prompt for a single line of text.

    Dismisses with the stripped value, ``""`` for an empty submit and
    ``None`` when cancelled.
    """

    CSS = """
    TextPromptScreen {
        align: center middle;
    }

    #text-prompt-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #text-prompt-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #text-prompt-input {
        width: 100%;
        margin-bottom: 1;
    }
    """

    def __init__(self, title: str, placeholder: str = "", value: str = "") -> None:
        super().__init__()
        self._title = title
        self._placeholder = placeholder
        self._value = value

    def compose(self) -> ComposeResult:
        with Container(id="text-prompt-dialog"):
            yield Static(self._title, id="text-prompt-title")
            yield Input(
                value=self._value,
                placeholder=self._placeholder,
                id="text-prompt-input",
            )
            yield Static("Enter to confirm | Esc to cancel", id="text-prompt-help")

    def on_mount(self) -> None:
        self.query_one("#text-prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "text-prompt-input":
            return
        event.stop()
        self.dismiss(event.value.strip())

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


class ReactionPickerScreen(ModalScreen[str | None]):
    """Picker for the emoji to toggle on a message."""

    CSS = """
    ReactionPickerScreen {
        align: center middle;
    }

    #reaction-dialog {
        width: 30;
        max-height: 16;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #reaction-title {
        padding-bottom: 1;
        text-style: bold;
    }
    """

    def __init__(self, options: tuple[str, ...] = QUICK_REACTIONS) -> None:
        super().__init__()
        self._options = options

    def compose(self) -> ComposeResult:
        with Container(id="reaction-dialog"):
            yield Static("React with", id="reaction-title")
            yield OptionList(*self._options, id="reaction-options")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        index = event.option_index
        if 0 <= index < len(self._options):
            self.dismiss(self._options[index])

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)
