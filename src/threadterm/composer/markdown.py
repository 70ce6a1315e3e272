"""Named markdown insertions over the caret-aware buffer."""

from __future__ import annotations

from dataclasses import dataclass

from .buffer import CaretTextBuffer, ComposerState
from .paste import FENCE


@dataclass(frozen=True)
class MarkdownFormat:
    name: str
    before: str
    after: str


BOLD = MarkdownFormat("bold", "**", "**")
ITALIC = MarkdownFormat("italic", "*", "*")
INLINE_CODE = MarkdownFormat("inline_code", "`", "`")
BULLET_LIST = MarkdownFormat("bullet_list", "\n- ", "")
NUMBERED_LIST = MarkdownFormat("numbered_list", "\n1. ", "")
QUOTE = MarkdownFormat("quote", "\n> ", "")

CODE_FENCE_CLOSE = f"\n{FENCE}\n"
PASTED_CODE = MarkdownFormat("pasted_code", f"\n{FENCE}\n", CODE_FENCE_CLOSE)


def code_block(language: str = "") -> MarkdownFormat:
    return MarkdownFormat("code_block", f"\n{FENCE}{language}\n", CODE_FENCE_CLOSE)


def link(url: str = "url") -> MarkdownFormat:
    return MarkdownFormat("link", "[", f"]({url})")


class MarkdownInserter:
    """Toolbar and shortcut actions that wrap the selection in markdown."""

    FORMAT_NAMES = (
        "bold",
        "italic",
        "inline_code",
        "code_block",
        "bullet_list",
        "numbered_list",
        "link",
        "quote",
    )

    def __init__(self, buffer: CaretTextBuffer, code_language: str = "python") -> None:
        self.buffer = buffer
        self.code_language = code_language

    def _insert(self, fmt: MarkdownFormat, custom_content: str | None = None) -> ComposerState:
        return self.buffer.insert_around(fmt.before, fmt.after, custom_content)

    def bold(self) -> ComposerState:
        return self._insert(BOLD)

    def italic(self) -> ComposerState:
        return self._insert(ITALIC)

    def inline_code(self) -> ComposerState:
        return self._insert(INLINE_CODE)

    def code_block(self) -> ComposerState:
        return self._insert(code_block(self.code_language))

    def bullet_list(self) -> ComposerState:
        return self._insert(BULLET_LIST)

    def numbered_list(self) -> ComposerState:
        return self._insert(NUMBERED_LIST)

    def quote(self) -> ComposerState:
        return self._insert(QUOTE)

    def link(self, url: str = "url") -> ComposerState:
        return self._insert(link(url))

    def pasted_code(self, text: str) -> ComposerState:
        """Insert pasted source inside a generic fence, caret after the block."""
        return self._insert(PASTED_CODE, text)

    def apply(self, name: str) -> ComposerState:
        if name not in self.FORMAT_NAMES:
            raise ValueError(f"Unknown markdown format {name!r}.")
        return getattr(self, name)()
