"""Composer state and the caret-aware text buffer the composition tools share."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Protocol

from ..models import UploadedFile


@dataclass(frozen=True)
class ReplyTarget:
    message_id: str
    author_id: str


@dataclass(frozen=True)
class ComposerState:
    """Everything one authoring session owns; replaced, never mutated.

    ``anchor`` is the fixed end of a selection; the selection spans between
    ``anchor`` and ``caret``. ``None`` means the selection is collapsed.
    """

    text: str = ""
    caret: int = 0
    anchor: int | None = None
    attachments: tuple[UploadedFile, ...] = ()
    reply_to: ReplyTarget | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.caret <= len(self.text):
            raise ValueError(
                f"caret {self.caret} outside text of length {len(self.text)}"
            )
        if self.anchor is not None and not 0 <= self.anchor <= len(self.text):
            raise ValueError(
                f"anchor {self.anchor} outside text of length {len(self.text)}"
            )

    @property
    def selection(self) -> tuple[int, int]:
        """Return the selection as an ordered ``(start, end)`` pair."""
        if self.anchor is None:
            return self.caret, self.caret
        return min(self.anchor, self.caret), max(self.anchor, self.caret)

    @property
    def selected_text(self) -> str:
        start, end = self.selection
        return self.text[start:end]

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.attachments


def replace_range(state: ComposerState, start: int, end: int, replacement: str) -> ComposerState:
    """Replace ``text[start:end]`` and park the caret after the replacement."""
    text = state.text[:start] + replacement + state.text[end:]
    return replace(state, text=text, caret=start + len(replacement), anchor=None)


def wrap_selection(
    state: ComposerState,
    before: str,
    after: str,
    custom_content: str | None = None,
) -> ComposerState:
    """Wrap the selection in ``before``/``after`` or insert custom content.

    Wrapping leaves the caret just inside the closing token so typing carries
    on within the markup. Custom content replaces the selection and leaves the
    caret after the whole inserted block.
    """
    start, end = state.selection
    if custom_content is not None:
        payload = before + custom_content + after
        caret = start + len(payload)
    else:
        selected = state.text[start:end]
        payload = before + selected + after
        caret = start + len(before) + len(selected)
    text = state.text[:start] + payload + state.text[end:]
    return replace(state, text=text, caret=caret, anchor=None)


class CaretSink(Protocol):
    """Host input widget that displays the caret."""

    def apply_caret(self, offset: int) -> None: ...


Scheduler = Callable[[Callable[[], None]], Any]


class CaretTextBuffer:
    """Text plus caret, with caret write-back deferred past the host's re-render.

    The host widget resets its own caret when its content changes, so a caret
    computed by an edit is handed to ``sink`` through ``schedule`` (run after
    the next render commits). Each edit bumps a generation counter; a pending
    write from an older generation is discarded when it finally runs. Reading
    :attr:`caret` is always correct immediately after an edit.
    """

    def __init__(
        self,
        state: ComposerState | None = None,
        sink: CaretSink | None = None,
        schedule: Scheduler | None = None,
    ) -> None:
        self._state = state or ComposerState()
        self._sink = sink
        self._schedule = schedule
        self._generation = 0
        self._pending: int | None = None

    @property
    def state(self) -> ComposerState:
        return self._state

    @property
    def text(self) -> str:
        return self._state.text

    @property
    def caret(self) -> int:
        return self._state.caret

    @property
    def has_pending_caret(self) -> bool:
        return self._pending is not None

    def attach(self, sink: CaretSink | None, schedule: Scheduler | None = None) -> None:
        self._sink = sink
        self._schedule = schedule

    def replace_state(self, state: ComposerState) -> None:
        """Swap in a state produced elsewhere; the host already shows its text."""
        self._generation += 1
        self._pending = None
        self._state = state

    def set_text(self, text: str, caret: int | None = None) -> None:
        """Replace text and caret together, as reported by the host widget."""
        caret = len(text) if caret is None else caret
        self.replace_state(replace(self._state, text=text, caret=caret, anchor=None))

    def sync_from_host(self, text: str, caret: int) -> bool:
        """Adopt text typed into the host; returns False for echoes of our own edit.

        While a caret write is pending the host re-renders with our text and a
        stale caret. That echo is ignored so the deferred write still lands.
        """
        if self._pending is not None and text == self._state.text:
            return False
        self.set_text(text, caret)
        return True

    def select(self, start: int, end: int) -> None:
        """Record a host selection running from ``start`` (anchor) to ``end``."""
        if self._pending is not None:
            # The host is still showing its own caret reset.
            return
        anchor = None if start == end else start
        self._state = replace(self._state, caret=end, anchor=anchor)

    def insert_around(
        self, before: str, after: str, custom_content: str | None = None
    ) -> ComposerState:
        self.commit(wrap_selection(self._state, before, after, custom_content))
        return self._state

    def replace_range(self, start: int, end: int, replacement: str) -> ComposerState:
        self.commit(replace_range(self._state, start, end, replacement))
        return self._state

    def commit(self, state: ComposerState) -> None:
        """Adopt an edited state and queue its caret for the host widget."""
        self._generation += 1
        self._state = state
        self._pending = state.caret
        if self._schedule is None:
            self.flush_caret()
            return
        generation = self._generation
        self._schedule(lambda: self._flush_generation(generation))

    def _flush_generation(self, generation: int) -> None:
        if generation == self._generation:
            self.flush_caret()

    def flush_caret(self) -> None:
        """Write the pending caret to the host now, if one is queued."""
        offset, self._pending = self._pending, None
        if offset is not None and self._sink is not None:
            self._sink.apply_caret(offset)
