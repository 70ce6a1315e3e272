"""Runtime-style tests for the real Textual app class."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from pathlib import Path
import tempfile
import unittest

from threadterm.composer.buffer import ReplyTarget
from threadterm.exceptions import ApiConnectionError
from threadterm.models import (
    Message,
    MessagePage,
    UploadedFile,
    UploadPayload,
    UserCandidate,
)

try:
    from textual.widgets import Input, OptionList

    from threadterm.app import ThreadTermApp
    from threadterm.screens import ReactionPickerScreen, TextPromptScreen
    from threadterm.widgets.thread_view import MessageRow, UnreadDividerRow
except ModuleNotFoundError:
    Input = None  # type: ignore[assignment]
    OptionList = None  # type: ignore[assignment]
    ThreadTermApp = None  # type: ignore[assignment]
    ReactionPickerScreen = None  # type: ignore[assignment]
    TextPromptScreen = None  # type: ignore[assignment]
    MessageRow = None  # type: ignore[assignment]
    UnreadDividerRow = None  # type: ignore[assignment]

BASE = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def _msg(message_id: str, minutes: int, *, read: bool = True, **extra: object) -> Message:
    return Message(
        id=message_id,
        author_id=str(extra.pop("author_id", "u1")),
        timestamp=BASE + timedelta(minutes=minutes),
        content=f"text {message_id}",
        read_by_current_user=read,
        **extra,
    )


class _RuntimeFakeApi:
    """In-memory backend standing in for ChatApiClient."""

    def __init__(self, messages: tuple[Message, ...] = (), fail_load: bool = False) -> None:
        self.messages = messages
        self.fail_load = fail_load
        self.sent: list[tuple[str, str, str | None]] = []
        self.read: list[str] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.uploads: list[str] = []
        self.closed = False

    async def fetch_page(self, channel_id: str, cursor: int = 0, limit: int = 50) -> MessagePage:
        if self.fail_load:
            raise ApiConnectionError("offline")
        return MessagePage(messages=self.messages, next_cursor=None)

    async def mark_read(self, message_id: str, channel_id: str) -> None:
        self.read.append(message_id)

    async def search_users(self, query: str) -> list[UserCandidate]:
        return [
            UserCandidate(id="u2", name="alice"),
            UserCandidate(id="u3", name="alan"),
            UserCandidate(id="u4", name="bob"),
        ]

    async def upload_file(self, payload: UploadPayload) -> UploadedFile:
        self.uploads.append(payload.name)
        return UploadedFile(id=f"f-{payload.name}", name=payload.name, size=payload.size)

    async def send_message(self, channel_id, content, attachments=(), reply_to=None) -> Message:
        self.sent.append((channel_id, content, reply_to))
        return Message(
            id=f"sent-{len(self.sent)}",
            author_id="me",
            timestamp=BASE + timedelta(hours=1),
            content=content,
            reply_to=reply_to,
            read_by_current_user=True,
        )

    async def add_reaction(self, message_id: str, emoji: str) -> None:
        self.reactions.append(("add", message_id, emoji))

    async def remove_reaction(self, message_id: str, emoji: str) -> None:
        self.reactions.append(("remove", message_id, emoji))

    async def aclose(self) -> None:
        self.closed = True


def _thread() -> tuple[Message, ...]:
    return (
        _msg("m1", 0),
        _msg("m3", 30, author_id="u2"),
        _msg("m2", 5, read=False, reply_to="m1"),
    )


@unittest.skipIf(ThreadTermApp is None, "textual is not installed")
class AppRuntimeTests(unittest.IsolatedAsyncioTestCase):
    """Exercise actions against the real app class."""

    def setUp(self) -> None:
        # The app configures root logging; keep tests isolated.
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)
        self._temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._temp_dir.cleanup)

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _build_app(self, api: _RuntimeFakeApi) -> ThreadTermApp:
        assert ThreadTermApp is not None
        config_path = Path(self._temp_dir.name) / "config.toml"
        config_path.write_text(
            '[app]\ncurrent_user_id = "me"\n\n[api]\nchannel_id = "general"\n',
            encoding="utf-8",
        )
        app = ThreadTermApp(config_path=config_path, api_client=api)  # type: ignore[arg-type]
        app._notices = []  # type: ignore[attr-defined]
        app.notify = lambda message, **kwargs: app._notices.append(message)  # type: ignore[method-assign,attr-defined]
        return app

    async def _settle(self, app: ThreadTermApp, pilot) -> None:
        await app._task_manager.await_all()
        await pilot.pause()
        await pilot.pause()

    async def test_initial_load_renders_threaded_rows(self) -> None:
        api = _RuntimeFakeApi(_thread())
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            rows = list(app.query(MessageRow))
            self.assertEqual([row.message.id for row in rows], ["m1", "m2", "m3"])
            self.assertEqual(rows[1].depth, 1)
            self.assertEqual(len(app.query(UnreadDividerRow)), 1)
            self.assertEqual(api.read, ["m2"])
            self.assertEqual(app.sub_title, "#general")
        self.assertTrue(api.closed)

    async def test_load_failure_is_reported(self) -> None:
        app = self._build_app(_RuntimeFakeApi(fail_load=True))
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            self.assertEqual(len(app.query(MessageRow)), 0)
            self.assertIn("Could not load messages: offline", app._notices)

    async def test_typing_and_enter_sends(self) -> None:
        api = _RuntimeFakeApi(_thread())
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            await pilot.press("h", "i")
            await pilot.pause()
            self.assertEqual(app.session.state.text, "hi")
            await pilot.press("enter")
            await self._settle(app, pilot)

            self.assertEqual(api.sent, [("general", "hi", None)])
            self.assertEqual(app.session.state.text, "")
            self.assertEqual(app._w_composer.area.text, "")
            ids = [row.message.id for row in app.query(MessageRow)]
            self.assertEqual(ids[-1], "sent-1")

    async def test_shift_enter_inserts_newline(self) -> None:
        api = _RuntimeFakeApi()
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            await pilot.press("a", "shift+enter", "b")
            self.assertEqual(app._w_composer.area.text, "a\nb")
            self.assertEqual(api.sent, [])

    async def test_empty_send_is_ignored(self) -> None:
        api = _RuntimeFakeApi()
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            await app.action_send_message()
            self.assertEqual(api.sent, [])

    async def test_reply_to_focused_message(self) -> None:
        api = _RuntimeFakeApi(_thread())
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await app.action_reply()
            self.assertIn("Select a message to reply to.", app._notices)

            await self._settle(app, pilot)
            app.query(MessageRow).first().focus()
            await pilot.pause()
            await app.action_reply()
            self.assertEqual(app.session.state.reply_to, ReplyTarget("m1", "u1"))
            banner = app.query_one("#reply_banner")
            self.assertNotIn("hidden", banner.classes)

            app.session.buffer.set_text("ack")
            await app.action_send_message()
            self.assertEqual(api.sent, [("general", "ack", "m1")])
            self.assertIsNone(app.session.state.reply_to)

    async def test_cancel_reply(self) -> None:
        app = self._build_app(_RuntimeFakeApi())
        async with app.run_test() as pilot:
            app.session.start_reply("m1", "u1")
            app.action_cancel_reply()
            await pilot.pause()
            self.assertIsNone(app.session.state.reply_to)
            self.assertIn("hidden", app.query_one("#reply_banner").classes)

    async def test_bold_format_updates_composer(self) -> None:
        app = self._build_app(_RuntimeFakeApi())
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.action_format("bold")
            await pilot.pause()
            self.assertEqual(app.session.state.text, "****")
            self.assertEqual(app._w_composer.area.text, "****")
            self.assertEqual(app.session.state.caret, 2)

    async def test_link_prompt_inserts_url(self) -> None:
        app = self._build_app(_RuntimeFakeApi())
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.action_format("link")
            await pilot.pause()
            self.assertIsInstance(app.screen, TextPromptScreen)
            app.screen.query_one("#text-prompt-input", Input).value = "https://x.test"
            await pilot.press("enter")
            await pilot.pause()
            self.assertEqual(app.session.state.text, "[](https://x.test)")

    async def test_mention_selection_with_enter(self) -> None:
        api = _RuntimeFakeApi()
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            await pilot.press("@", "a", "l")
            await self._settle(app, pilot)

            mentions = app.session.mentions
            self.assertEqual([c.name for c in mentions.candidates], ["alice", "alan"])
            menu = app.query_one("#mention_menu", OptionList)
            self.assertNotIn("hidden", menu.classes)

            await pilot.press("down", "enter")
            await pilot.pause()
            self.assertEqual(app.session.state.text, "@alan ")
            self.assertEqual(api.sent, [])
            self.assertFalse(mentions.active)

    async def test_react_toggles_on_focused_message(self) -> None:
        api = _RuntimeFakeApi(_thread())
        app = self._build_app(api)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.query(MessageRow).first().focus()
            await pilot.pause()
            await app.action_react()
            await pilot.pause()
            self.assertIsInstance(app.screen, ReactionPickerScreen)
            options = app.screen.query_one("#reaction-options", OptionList)
            options.focus()
            options.highlighted = 0
            await pilot.press("enter")
            await self._settle(app, pilot)

            self.assertEqual(api.reactions, [("add", "m1", "👍")])
            message = app.timeline.get_message("m1")
            self.assertEqual(message.reactions[0].user_ids, ("me",))

    async def test_file_paths_are_uploaded(self) -> None:
        api = _RuntimeFakeApi()
        app = self._build_app(api)
        path = Path(self._temp_dir.name) / "notes.txt"
        path.write_text("notes", encoding="utf-8")
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            uploaded = await app._upload_paths([str(path)])
            await pilot.pause()
            self.assertEqual([u.name for u in uploaded], ["notes.txt"])
            self.assertEqual(api.uploads, ["notes.txt"])
            self.assertTrue(app.session.can_send)

            missing = await app._upload_paths([str(path.with_name("gone.txt"))])
            self.assertEqual(missing, [])
            self.assertTrue(any(n.startswith("Could not read file") for n in app._notices))

    async def test_pasted_file_paths_upload_through_session(self) -> None:
        api = _RuntimeFakeApi()
        app = self._build_app(api)
        path = Path(self._temp_dir.name) / "notes.txt"
        path.write_text("notes", encoding="utf-8")
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            await app._paste(str(path), [str(path)])
            await pilot.pause()
            self.assertEqual(api.uploads, ["notes.txt"])
            self.assertEqual(
                [f.name for f in app.session.state.attachments], ["notes.txt"]
            )
            self.assertEqual(app.session.state.text, "")

            await app._paste("gone", [str(path.with_name("gone.txt"))])
            self.assertEqual(api.uploads, ["notes.txt"])
            self.assertTrue(any(n.startswith("Could not read file") for n in app._notices))


if __name__ == "__main__":
    unittest.main()
