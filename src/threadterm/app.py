"""Main Textual application: one channel's threaded timeline plus a composer."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import timedelta
import logging
from pathlib import Path
import sys
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Footer, Header, TextArea

from .api import ChatApiClient
from .composer import ComposerSession
from .config import load_config
from .events import MESSAGE_CREATED, EventBus
from .exceptions import ThreadTermError
from .logging_utils import configure_logging
from .models import Message, UploadedFile, UploadPayload
from .screens import ReactionPickerScreen, TextPromptScreen
from .task_manager import TaskManager
from .threads import OrphanPolicy
from .timeline import ChannelTimeline
from .widgets.composer import ComposerArea, ComposerBox
from .widgets.thread_view import ThreadView

LOGGER = logging.getLogger(__name__)

FORMAT_ACTIONS = (
    "bold",
    "italic",
    "inline_code",
    "code_block",
    "link",
    "bullet_list",
    "numbered_list",
    "quote",
)


class ThreadTermApp(App[None]):
    """Terminal client for a threaded channel."""

    CSS = """
    Screen {
        background: $background;
    }

    #app-root {
        layout: vertical;
        width: 100%;
        height: 1fr;
    }

    #thread {
        height: 1fr;
        padding: 0 1;
    }

    ComposerBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }
    """

    BINDINGS = [Binding("escape", "cancel_reply", "Cancel reply", show=False)]

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "send_message": "Send",
        "bold": "Bold",
        "italic": "Italic",
        "inline_code": "Code",
        "code_block": "Code block",
        "link": "Link",
        "bullet_list": "List",
        "numbered_list": "Numbered",
        "quote": "Quote",
        "attach_file": "Attach",
        "load_older": "Older",
        "reply": "Reply",
        "react": "React",
        "quit": "Quit",
    }

    def __init__(
        self,
        config_path: Path | None = None,
        channel_id: str | None = None,
        api_client: ChatApiClient | None = None,
    ) -> None:
        self.config = load_config(config_path)
        self.window_title = str(self.config["app"]["title"])
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )

        api_cfg = self.config["api"]
        timeline_cfg = self.config["timeline"]
        composer_cfg = self.config["composer"]
        self.channel_id = channel_id or str(api_cfg["channel_id"])
        self.current_user_id = str(self.config["app"]["current_user_id"])
        self.api = api_client or ChatApiClient(
            base_url=str(api_cfg["base_url"]),
            timeout=float(api_cfg["timeout"]),
            retries=int(api_cfg["retries"]),
            retry_backoff_seconds=float(api_cfg["retry_backoff_seconds"]),
        )
        self._task_manager = TaskManager()
        self.events = EventBus()
        self.timeline = ChannelTimeline(
            self.channel_id,
            self.api,
            self.api,
            self._task_manager,
            page_size=int(api_cfg["page_size"]),
            orphan_policy=OrphanPolicy(timeline_cfg["orphan_policy"]),
            grouping_window=timedelta(
                seconds=int(timeline_cfg["grouping_window_seconds"])
            ),
            mark_read=bool(timeline_cfg["mark_read"]),
        )
        self.timeline.subscribe(self.events)
        self.timeline.on_change(self._schedule_render)
        self.session = ComposerSession(
            send_action=self._send_to_backend,
            upload_service=self.api,
            user_lookup=self.api.search_users,
            notify=self._notify_error,
            code_language=str(composer_cfg["code_block_language"]),
            mention_max_length=int(composer_cfg["mention_max_length"]),
            mention_anchor_offset=int(composer_cfg["mention_anchor_offset"]),
            max_upload_bytes=int(composer_cfg["max_upload_bytes"]),
        )
        self.session.on_change(self._refresh_composer)
        self._binding_specs = self._binding_specs_from_config(self.config)
        self._render_scheduled = False
        self._keep_scroll = False
        super().__init__()

        self._w_thread: ThreadView | None = None
        self._w_composer: ComposerBox | None = None

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if not isinstance(binding_key, str) or not binding_key.strip():
                continue
            action = (
                f"format('{action_name}')"
                if action_name in FORMAT_ACTIONS
                else action_name
            )
            bindings.append(
                Binding(
                    key=binding_key.strip(),
                    action=action,
                    description=description,
                    show=action_name not in FORMAT_ACTIONS,
                )
            )
        return bindings

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="app-root"):
            yield ThreadView(current_user_id=self.current_user_id, id="thread")
            yield ComposerBox()
        yield Footer()

    async def on_mount(self) -> None:
        """Register keybindings, wire the composer and load the first page."""
        self.title = self.window_title
        self.sub_title = f"#{self.channel_id}"
        for binding in self._binding_specs:
            self.bind(
                binding.key,
                binding.action,
                description=binding.description,
                show=binding.show,
                key_display=binding.key_display,
            )

        self._w_thread = self.query_one("#thread", ThreadView)
        self._w_composer = self.query_one(ComposerBox)
        area = self._w_composer.area
        area.classifier = self.session.classify
        self.session.buffer.attach(area, self.call_after_refresh)
        area.focus()
        self._refresh_composer()
        self._task_manager.spawn(self._load_initial(), name="timeline.initial")

    async def on_unmount(self) -> None:
        """Cancel background work and close the HTTP client."""
        await self._task_manager.cancel_all()
        await self.api.aclose()

    # Timeline

    async def _load_initial(self) -> None:
        try:
            await self.timeline.load_initial()
        except ThreadTermError as exc:
            LOGGER.warning(
                "app.timeline.load_failed",
                extra={"event": "app.timeline.load_failed", "error": str(exc)},
            )
            self._notify_error(f"Could not load messages: {exc}")

    async def action_load_older(self) -> None:
        """Fetch the next older page of the channel."""
        if not self.timeline.has_more:
            self.notify("No older messages.")
            return
        self._keep_scroll = True
        try:
            await self.timeline.load_older()
        except ThreadTermError as exc:
            self._keep_scroll = False
            self._notify_error(f"Could not load older messages: {exc}")

    def _schedule_render(self) -> None:
        if self._render_scheduled:
            return
        self._render_scheduled = True
        self.call_later(self._render_timeline)

    async def _render_timeline(self) -> None:
        self._render_scheduled = False
        keep_position, self._keep_scroll = self._keep_scroll, False
        thread = self._w_thread
        if thread is None:
            return
        await thread.show_rows(
            self.timeline.display_rows(), keep_position=keep_position
        )

    async def action_reply(self) -> None:
        """Reply to the focused message."""
        message = self._focused_message()
        if message is None:
            self.notify("Select a message to reply to.")
            return
        self.session.start_reply(message.id, message.author_id)
        self._refresh_composer()
        if self._w_composer is not None:
            self._w_composer.area.focus()

    def action_cancel_reply(self) -> None:
        if self.session.state.reply_to is None:
            return
        self.session.cancel_reply()
        self._refresh_composer()

    async def action_react(self) -> None:
        """Pick an emoji and toggle it on the focused message."""
        message = self._focused_message()
        if message is None:
            self.notify("Select a message to react to.")
            return
        if not self.current_user_id:
            self.notify("Set app.current_user_id to react.", severity="warning")
            return
        message_id = message.id

        def apply(emoji: str | None) -> None:
            if emoji:
                self._task_manager.spawn(
                    self.timeline.toggle_reaction(
                        message_id, emoji, self.current_user_id
                    )
                )

        self.push_screen(ReactionPickerScreen(), apply)

    def _focused_message(self) -> Message | None:
        if self._w_thread is None:
            return None
        return self._w_thread.focused_message()

    # Composer

    def _notify_error(self, text: str) -> None:
        self.notify(text, severity="error")

    def _refresh_composer(self) -> None:
        """Push the session state to the composer widgets."""
        composer = self._w_composer
        if composer is None:
            return
        state = self.session.state
        area = composer.area
        area.show_text(state.text)
        area.mention_active = self.session.mentions.active
        composer.set_attachments(state.attachments)
        composer.set_reply(state.reply_to)
        composer.set_send_enabled(self.session.can_send, self.session.uploading)
        self._refresh_mention_menu()

    def _refresh_mention_menu(self) -> None:
        composer = self._w_composer
        if composer is None:
            return
        mentions = self.session.mentions
        if mentions.active and mentions.candidates:
            composer.show_mentions(mentions.candidates, mentions.highlighted)
        else:
            composer.hide_mentions()

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        area = event.text_area
        if not isinstance(area, ComposerArea):
            return
        previous = self._mention_prefix()
        self.session.text_changed(area.text, area.caret_offset, area.bounds)
        self._after_caret_change(previous)

    def on_text_area_selection_changed(self, event: TextArea.SelectionChanged) -> None:
        area = event.text_area
        if not isinstance(area, ComposerArea):
            return
        previous = self._mention_prefix()
        start, end = area.selection_offsets
        self.session.caret_moved(start, end, area.bounds)
        self._after_caret_change(previous)

    def _mention_prefix(self) -> str | None:
        query = self.session.mentions.query
        return None if query is None else query.search_prefix

    def _after_caret_change(self, previous_prefix: str | None) -> None:
        mentions = self.session.mentions
        prefix = self._mention_prefix()
        if prefix is not None and prefix != previous_prefix:
            self._task_manager.spawn(self._refresh_mentions(), name="mention.lookup")
        if self._w_composer is not None:
            self._w_composer.area.mention_active = mentions.active
            self._w_composer.set_send_enabled(
                self.session.can_send, self.session.uploading
            )
        self._refresh_mention_menu()

    async def _refresh_mentions(self) -> None:
        await self.session.mentions.refresh_candidates()
        self._refresh_mention_menu()

    def on_composer_area_mention_key(self, event: ComposerArea.MentionKey) -> None:
        mentions = self.session.mentions
        if event.key == "down":
            mentions.move_next()
        elif event.key == "up":
            mentions.move_previous()
        elif event.key in {"enter", "tab"}:
            self.session.select_mention()
        elif event.key == "escape":
            mentions.dismiss()
        self._refresh_composer()

    def on_composer_box_mention_chosen(self, event: ComposerBox.MentionChosen) -> None:
        candidates = self.session.mentions.candidates
        if 0 <= event.index < len(candidates):
            self.session.select_mention(candidates[event.index])
            self._refresh_composer()
        if self._w_composer is not None:
            self._w_composer.area.focus()

    def on_composer_box_format_requested(
        self, event: ComposerBox.FormatRequested
    ) -> None:
        self.action_format(event.format_name)

    def action_format(self, name: str) -> None:
        """Apply a named markdown format to the composer selection."""
        if name == "link":
            self.push_screen(
                TextPromptScreen("Link URL", placeholder="https://"),
                self._insert_link,
            )
            return
        self.session.markdown.apply(name)
        self._refresh_composer()

    def _insert_link(self, url: str | None) -> None:
        if url is None:
            return
        self.session.markdown.link(url or "url")
        self._refresh_composer()
        if self._w_composer is not None:
            self._w_composer.area.focus()

    def on_composer_area_paste_received(
        self, event: ComposerArea.PasteReceived
    ) -> None:
        self._task_manager.spawn(self._paste(event.text, event.paths))

    async def _paste(self, text: str, paths: Sequence[str] = ()) -> None:
        payloads = await self._read_payloads(paths)
        if payloads is None:
            return
        await self.session.paste(text, payloads)
        self._refresh_composer()

    def action_attach_file(self) -> None:
        """Prompt for a file path and upload it."""

        def upload(path: str | None) -> None:
            if path:
                self._task_manager.spawn(self._upload_paths([path]))

        self.push_screen(
            TextPromptScreen("Attach file", placeholder="/path/to/file"), upload
        )

    async def _read_payloads(
        self, paths: Sequence[str]
    ) -> list[UploadPayload] | None:
        try:
            return [
                await asyncio.to_thread(UploadPayload.from_path, Path(p).expanduser())
                for p in paths
            ]
        except OSError as exc:
            self._notify_error(f"Could not read file: {exc}")
            return None

    async def _upload_paths(self, paths: Sequence[str]) -> list[UploadedFile]:
        payloads = await self._read_payloads(paths)
        if payloads is None:
            return []
        return await self.session.upload(payloads)

    def on_composer_box_attach_requested(
        self, _message: ComposerBox.AttachRequested
    ) -> None:
        self.action_attach_file()

    async def on_composer_box_send_requested(
        self, _message: ComposerBox.SendRequested
    ) -> None:
        await self.action_send_message()

    async def on_composer_area_submitted(self, _message: ComposerArea.Submitted) -> None:
        await self.action_send_message()

    async def action_send_message(self) -> None:
        """Send the composed message, keeping the draft when the send fails."""
        try:
            sent = await self.session.send()
        except ThreadTermError as exc:
            LOGGER.warning(
                "app.send.failed",
                extra={"event": "app.send.failed", "error": str(exc)},
            )
            self._notify_error(f"Send failed: {exc}")
            return
        if not sent and self.session.uploading:
            self.notify("Wait for uploads to finish.")
        self._refresh_composer()

    async def _send_to_backend(
        self,
        text: str,
        attachments: Sequence[UploadedFile],
        reply_to: str | None,
    ) -> None:
        message = await self.api.send_message(
            self.channel_id, text, attachments, reply_to
        )
        await self.events.publish(MESSAGE_CREATED, {"message": message}, "composer")

    async def action_quit(self) -> None:
        """Exit the app."""
        self.exit()
