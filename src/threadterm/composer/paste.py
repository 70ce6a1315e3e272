"""Classify pasted content: files to upload, code to fence, or plain text."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import os
import re

FENCE = "```"

CODE_SYMBOLS = re.compile(r"[{};=()\[\]<>]")
CODE_KEYWORDS = re.compile(
    r"\b(const|let|var|function|class|import|export|if|for|return|interface|type)\b"
)


def is_likely_code(text: str) -> bool:
    """Guess whether multi-line ``text`` is source code."""
    lines = text.split("\n")
    if len(lines) <= 1:
        return False
    indented = any(line.startswith(("  ", "\t")) for line in lines)
    return bool(CODE_SYMBOLS.search(text) or CODE_KEYWORDS.search(text) or indented)


class PasteAction(str, Enum):
    UPLOAD_FILES = "upload_files"
    WRAP_CODE = "wrap_code"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class PasteDecision:
    action: PasteAction
    text: str = ""

    @property
    def intercepts(self) -> bool:
        """Whether the host's default insertion must be suppressed."""
        return self.action is not PasteAction.PASSTHROUGH


def classify_paste(
    text: str,
    has_files: bool = False,
    predicate: Callable[[str], bool] = is_likely_code,
) -> PasteDecision:
    if has_files:
        return PasteDecision(PasteAction.UPLOAD_FILES)
    if not text or text.lstrip().startswith(FENCE):
        return PasteDecision(PasteAction.PASSTHROUGH, text)
    if predicate(text):
        return PasteDecision(PasteAction.WRAP_CODE, text)
    return PasteDecision(PasteAction.PASSTHROUGH, text)


def extract_dropped_paths(text: str) -> list[str]:
    """Return file paths when a paste is nothing but existing files.

    Dragging files onto a terminal pastes their paths, optionally quoted or as
    ``file://`` URIs. Any token that is not an existing file means the paste is
    ordinary text and an empty list is returned.
    """
    paths: list[str] = []
    for token in text.strip().split():
        cleaned = token.strip().strip("'\"")
        if cleaned.startswith("file://"):
            cleaned = cleaned[len("file://") :]
        expanded = os.path.expanduser(cleaned)
        if not cleaned or not os.path.isfile(expanded):
            return []
        paths.append(expanded)
    return paths
