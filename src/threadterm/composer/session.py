"""One message-authoring session: text, mentions, paste, uploads and send."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
import logging
from typing import Protocol

from ..exceptions import SendRejectedError, UploadError
from ..models import UploadedFile, UploadPayload, UserCandidate
from .buffer import CaretTextBuffer, ComposerState, ReplyTarget
from .markdown import MarkdownInserter
from .mentions import Bounds, MentionTrigger, UserLookup
from .paste import PasteAction, PasteDecision, classify_paste, is_likely_code

LOGGER = logging.getLogger(__name__)


class UploadService(Protocol):
    async def upload_file(self, payload: UploadPayload) -> UploadedFile: ...


SendAction = Callable[[str, Sequence[UploadedFile], str | None], Awaitable[object]]
Notifier = Callable[[str], None]


class ComposerSession:
    """Coordinate the composition tools around a single :class:`ComposerState`.

    Sending is refused while any upload is in flight, so a message can never
    reference an attachment that does not exist yet.
    """

    def __init__(
        self,
        *,
        send_action: SendAction,
        upload_service: UploadService | None = None,
        user_lookup: UserLookup | None = None,
        buffer: CaretTextBuffer | None = None,
        notify: Notifier | None = None,
        code_language: str = "python",
        mention_max_length: int = 20,
        mention_anchor_offset: int = 280,
        max_upload_bytes: int | None = None,
        code_predicate: Callable[[str], bool] = is_likely_code,
    ) -> None:
        self._send_action = send_action
        self._upload_service = upload_service
        self.buffer = buffer or CaretTextBuffer()
        self.mentions = MentionTrigger(
            user_lookup,
            max_length=mention_max_length,
            anchor_offset=mention_anchor_offset,
        )
        self.markdown = MarkdownInserter(self.buffer, code_language)
        self._notify = notify
        self._max_upload_bytes = max_upload_bytes
        self._code_predicate = code_predicate
        self._uploads_in_flight = 0
        self._listeners: list[Callable[[], None]] = []

    @property
    def state(self) -> ComposerState:
        return self.buffer.state

    @property
    def uploading(self) -> bool:
        return self._uploads_in_flight > 0

    @property
    def can_send(self) -> bool:
        return not self.uploading and not self.state.is_empty

    def on_change(self, listener: Callable[[], None]) -> None:
        """Register a callback for upload progress and attachment changes."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _report(self, message: str) -> None:
        if self._notify is not None:
            self._notify(message)

    def text_changed(
        self, text: str, caret: int, bounds: Bounds | None = None
    ) -> None:
        """Adopt host edits and recompute the mention query."""
        self.buffer.sync_from_host(text, caret)
        self.mentions.update(self.state, bounds)

    def caret_moved(self, start: int, end: int, bounds: Bounds | None = None) -> None:
        self.buffer.select(start, end)
        self.mentions.update(self.state, bounds)

    def select_mention(self, candidate: UserCandidate | None = None) -> bool:
        return self.mentions.select(self.buffer, candidate)

    def start_reply(self, message_id: str, author_id: str) -> None:
        self.buffer.replace_state(
            replace(self.state, reply_to=ReplyTarget(message_id, author_id))
        )

    def cancel_reply(self) -> None:
        self.buffer.replace_state(replace(self.state, reply_to=None))

    def remove_attachment(self, file_id: str) -> None:
        remaining = tuple(a for a in self.state.attachments if a.id != file_id)
        self.buffer.replace_state(replace(self.state, attachments=remaining))

    async def upload(self, payloads: Sequence[UploadPayload]) -> list[UploadedFile]:
        """Upload ``payloads`` together; on any failure none are attached.

        Failures are reported through the notifier and leave the typed text
        and earlier attachments untouched.
        """
        if not payloads:
            return []
        if self._upload_service is None:
            self._report("File uploads are not available.")
            return []
        if self._max_upload_bytes is not None:
            too_large = [p.name for p in payloads if p.size > self._max_upload_bytes]
            if too_large:
                self._report(f"File too large: {', '.join(too_large)}")
                return []

        service = self._upload_service
        self._uploads_in_flight += 1
        self._changed()
        try:
            uploaded = await asyncio.gather(
                *(service.upload_file(payload) for payload in payloads)
            )
        except (UploadError, OSError) as exc:
            LOGGER.warning(
                "composer.upload_failed",
                extra={
                    "event": "composer.upload_failed",
                    "files": [p.name for p in payloads],
                    "error": str(exc),
                },
            )
            self._report(f"Upload failed: {exc}")
            return []
        finally:
            self._uploads_in_flight -= 1
            self._changed()

        # Text may have changed while awaiting; only the attachments move.
        attachments = self.state.attachments + tuple(uploaded)
        self.buffer.replace_state(replace(self.state, attachments=attachments))
        self._changed()
        LOGGER.info(
            "composer.upload_complete",
            extra={"event": "composer.upload_complete", "count": len(uploaded)},
        )
        return list(uploaded)

    def classify(self, text: str, has_files: bool = False) -> PasteDecision:
        return classify_paste(text, has_files, self._code_predicate)

    async def paste(
        self, text: str, files: Sequence[UploadPayload] = ()
    ) -> PasteDecision:
        """Handle a paste; the decision says whether the host must suppress it."""
        decision = self.classify(text, has_files=bool(files))
        if decision.action is PasteAction.UPLOAD_FILES:
            await self.upload(files)
        elif decision.action is PasteAction.WRAP_CODE:
            self.markdown.pasted_code(decision.text)
            self.mentions.update(self.state)
        return decision

    async def send(self, *, strict: bool = False) -> bool:
        """Send the composed message; returns False when sending is refused.

        With ``strict`` a refused send raises :class:`SendRejectedError`
        instead. The composer is reset only after the send action succeeds;
        if it raises, the exception propagates and nothing typed is lost.
        """
        if not self.can_send:
            if strict:
                reason = "upload in progress" if self.uploading else "nothing to send"
                raise SendRejectedError(f"Cannot send: {reason}.")
            LOGGER.debug(
                "composer.send_rejected",
                extra={
                    "event": "composer.send_rejected",
                    "uploading": self.uploading,
                },
            )
            return False
        state = self.state
        reply_id = state.reply_to.message_id if state.reply_to else None
        await self._send_action(state.text, list(state.attachments), reply_id)
        self.reset()
        return True

    def reset(self) -> None:
        self.buffer.replace_state(ComposerState())
        self.mentions.dismiss()
