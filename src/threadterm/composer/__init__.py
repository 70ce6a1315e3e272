"""Composition-time collaborators of a single message-authoring session."""

from __future__ import annotations

from .buffer import CaretTextBuffer, ComposerState, ReplyTarget, wrap_selection
from .markdown import MarkdownInserter
from .mentions import Bounds, MentionQuery, MentionTrigger, detect_mention
from .paste import PasteAction, PasteDecision, classify_paste, is_likely_code
from .session import ComposerSession

__all__ = [
    "Bounds",
    "CaretTextBuffer",
    "ComposerSession",
    "ComposerState",
    "MarkdownInserter",
    "MentionQuery",
    "MentionTrigger",
    "PasteAction",
    "PasteDecision",
    "ReplyTarget",
    "classify_paste",
    "detect_mention",
    "is_likely_code",
    "wrap_selection",
]
