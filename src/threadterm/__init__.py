"""Top-level package for threadterm."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .api import ChatApiClient
    from .app import ThreadTermApp
    from .composer import ComposerSession
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        ApiConnectionError,
        ApiResponseError,
        ConfigValidationError,
        SendRejectedError,
        ThreadTermError,
        UploadError,
    )
    from .models import Message, MessagePage, Reaction, UploadedFile, UserCandidate
    from .threads import assemble_thread
    from .timeline import ChannelTimeline

__all__ = [
    "ApiConnectionError",
    "ApiResponseError",
    "ChannelTimeline",
    "ChatApiClient",
    "ComposerSession",
    "ConfigValidationError",
    "Message",
    "MessagePage",
    "Reaction",
    "SendRejectedError",
    "ThreadTermApp",
    "ThreadTermError",
    "UploadError",
    "UploadedFile",
    "UserCandidate",
    "assemble_thread",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTIONS = {
    "ApiConnectionError",
    "ApiResponseError",
    "ConfigValidationError",
    "SendRejectedError",
    "ThreadTermError",
    "UploadError",
}
_MODELS = {"Message", "MessagePage", "Reaction", "UploadedFile", "UserCandidate"}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the core can be used without loading the UI."""
    if name in {"ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)
    if name in _MODELS:
        from . import models

        return getattr(models, name)
    if name == "assemble_thread":
        from .threads import assemble_thread

        return assemble_thread
    if name == "ChannelTimeline":
        from .timeline import ChannelTimeline

        return ChannelTimeline
    if name == "ComposerSession":
        from .composer import ComposerSession

        return ComposerSession
    if name == "ChatApiClient":
        from .api import ChatApiClient

        return ChatApiClient
    if name == "ThreadTermApp":
        from .app import ThreadTermApp

        return ThreadTermApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
