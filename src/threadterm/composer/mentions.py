"""Detect ``@mention`` queries around the caret and complete them."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging

from ..models import UserCandidate
from .buffer import CaretTextBuffer, ComposerState, replace_range

LOGGER = logging.getLogger(__name__)

MENTION_TRIGGER = "@"
MAX_QUERY_LENGTH = 20
ANCHOR_OFFSET = 280


@dataclass(frozen=True)
class Bounds:
    """On-screen box of the text input."""

    top: int
    left: int
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class Anchor:
    top: int
    left: int


@dataclass(frozen=True)
class MentionQuery:
    search_prefix: str
    trigger_offset: int
    anchor: Anchor


def anchor_above(bounds: Bounds, offset: int = ANCHOR_OFFSET) -> Anchor:
    """Place the suggestion popup a fixed distance above the input."""
    return Anchor(top=bounds.top - offset, left=bounds.left)


def detect_mention(
    text: str,
    caret: int,
    bounds: Bounds | None = None,
    *,
    max_length: int = MAX_QUERY_LENGTH,
    anchor_offset: int = ANCHOR_OFFSET,
) -> MentionQuery | None:
    """Return the active query ending at ``caret``, or None.

    The nearest ``@`` before the caret opens a query as long as nothing
    between it and the caret is whitespace and that stretch is at most
    ``max_length`` characters.
    """
    trigger = text.rfind(MENTION_TRIGGER, 0, caret)
    if trigger == -1:
        return None
    tail = text[trigger + 1 : caret]
    if len(tail) > max_length or any(ch.isspace() for ch in tail):
        return None
    anchor = anchor_above(bounds or Bounds(0, 0), anchor_offset)
    return MentionQuery(search_prefix=tail, trigger_offset=trigger, anchor=anchor)


def complete_mention(
    state: ComposerState, query: MentionQuery, candidate: UserCandidate
) -> ComposerState:
    """Swap ``@prefix`` for ``@name `` and put the caret after the space."""
    return replace_range(
        state,
        query.trigger_offset,
        state.caret,
        f"{MENTION_TRIGGER}{candidate.name} ",
    )


def filter_candidates(
    candidates: Sequence[UserCandidate], prefix: str
) -> list[UserCandidate]:
    term = prefix.lower()
    return [
        c
        for c in candidates
        if term in c.name.lower() or (c.email is not None and term in c.email.lower())
    ]


UserLookup = Callable[[str], Awaitable[Sequence[UserCandidate]]]


class MentionTrigger:
    """Track the active mention query and its suggestion list for one composer."""

    def __init__(
        self,
        lookup: UserLookup | None = None,
        *,
        max_length: int = MAX_QUERY_LENGTH,
        anchor_offset: int = ANCHOR_OFFSET,
    ) -> None:
        self._lookup = lookup
        self.max_length = max_length
        self.anchor_offset = anchor_offset
        self.query: MentionQuery | None = None
        self.candidates: list[UserCandidate] = []
        self.highlighted = 0

    @property
    def active(self) -> bool:
        return self.query is not None

    def update(self, state: ComposerState, bounds: Bounds | None = None) -> MentionQuery | None:
        """Recompute the query after any text or caret change."""
        query = detect_mention(
            state.text,
            state.caret,
            bounds,
            max_length=self.max_length,
            anchor_offset=self.anchor_offset,
        )
        previous = self.query
        self.query = query
        if query is None:
            self.candidates = []
            self.highlighted = 0
        elif previous is None or previous.search_prefix != query.search_prefix:
            self.highlighted = 0
        return query

    def dismiss(self) -> None:
        self.query = None
        self.candidates = []
        self.highlighted = 0

    async def refresh_candidates(self) -> list[UserCandidate]:
        """Look up users for the active prefix; lookup failures yield nothing."""
        query = self.query
        if query is None or self._lookup is None:
            self.candidates = []
            return self.candidates
        try:
            found = await self._lookup(query.search_prefix)
        except Exception as exc:  # noqa: BLE001 - suggestions are optional.
            LOGGER.warning(
                "mention.lookup_failed",
                extra={
                    "event": "mention.lookup_failed",
                    "prefix": query.search_prefix,
                    "error": str(exc),
                },
            )
            found = []
        if self.query is not query:
            # Superseded by a newer keystroke while awaiting.
            return self.candidates
        self.candidates = filter_candidates(list(found), query.search_prefix)
        self.highlighted = 0
        return self.candidates

    def move_next(self) -> None:
        if self.candidates:
            self.highlighted = (self.highlighted + 1) % len(self.candidates)

    def move_previous(self) -> None:
        if self.candidates:
            self.highlighted = (self.highlighted - 1) % len(self.candidates)

    @property
    def current(self) -> UserCandidate | None:
        if not self.candidates:
            return None
        return self.candidates[self.highlighted]

    def select(
        self, buffer: CaretTextBuffer, candidate: UserCandidate | None = None
    ) -> bool:
        """Complete the active query in ``buffer``; the query closes afterwards."""
        query = self.query
        chosen = candidate or self.current
        if query is None or chosen is None:
            return False
        buffer.commit(complete_mention(buffer.state, query, chosen))
        self.dismiss()
        return True
