"""Wire models for messages, reactions, uploads and directory candidates.

Field names follow Python conventions; the backend's camelCase names are
accepted (and emitted with ``by_alias=True``) through pydantic aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import mimetypes
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Reaction(_WireModel):
    """Aggregated emoji reaction on a message."""

    emoji: str
    count: int = Field(default=0, ge=0)
    user_ids: tuple[str, ...] = Field(default=(), alias="users")

    def reacted_by(self, user_id: str) -> bool:
        return user_id in self.user_ids


class Message(_WireModel):
    """A chat message as delivered by the messaging backend."""

    id: str
    author_id: str = Field(alias="userId")
    timestamp: datetime
    content: str = ""
    reply_to: str | None = Field(default=None, alias="replyTo")
    # Backends omit the flag for messages they never tracked; those count as unread.
    read_by_current_user: bool = Field(default=False, alias="readByCurrentUser")
    reactions: tuple[Reaction, ...] = ()

    @field_validator("reply_to", mode="before")
    @classmethod
    def _blank_reply_is_root(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("replyTo must be a string message id.")
        return value.strip() or None

    @field_validator("reactions", mode="before")
    @classmethod
    def _null_reactions(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def is_root(self) -> bool:
        return self.reply_to is None


class MessagePage(_WireModel):
    """One page of a paginated message listing."""

    messages: tuple[Message, ...] = ()
    next_cursor: int | None = Field(default=None, alias="nextCursor")


class UploadedFile(_WireModel):
    """Descriptor returned by the upload service; opaque to the composer."""

    id: str
    name: str
    size: int = 0
    url: str = ""

    @field_validator("size", mode="before")
    @classmethod
    def _coerce_size(cls, value: Any) -> int:
        # Some backends report sizes as numeric strings.
        if value is None or value == "":
            return 0
        return int(value)


class UserCandidate(_WireModel):
    """A user offered as a mention suggestion."""

    id: str
    name: str
    email: str | None = None


@dataclass(frozen=True)
class UploadPayload:
    """Binary content handed to the upload service."""

    name: str
    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> UploadPayload:
        source = Path(path)
        guessed, _ = mimetypes.guess_type(source.name)
        return cls(
            name=source.name,
            data=source.read_bytes(),
            content_type=guessed or "application/octet-stream",
        )
