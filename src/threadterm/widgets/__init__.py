"""Textual widgets for the channel view and composer."""

from .composer import ComposerArea, ComposerBox
from .thread_view import (
    DateDividerRow,
    MessageRow,
    ThreadView,
    UnreadDividerRow,
    date_label,
)

__all__ = [
    "ComposerArea",
    "ComposerBox",
    "DateDividerRow",
    "MessageRow",
    "ThreadView",
    "UnreadDividerRow",
    "date_label",
]
